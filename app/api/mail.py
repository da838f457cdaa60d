from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from app.api.auth import require_admin
from app.core.db import get_db
from app.core.identity import Identity
from app.models.site import EmailOAuthConfig
from app.services.mail_oauth import MailOAuthService

router = APIRouter()


class OAuthConfigIn(BaseModel):
    provider: str = Field(default="microsoft", pattern="^(microsoft|google|custom)$")
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    tenant_id: Optional[str] = None
    token_url: Optional[str] = None
    scope: Optional[str] = None
    sender_email: Optional[str] = None
    grant_type: str = "client_credentials"
    refresh_token: Optional[str] = None


class OAuthConfigOut(BaseModel):
    """Never exposes the secret or the tokens themselves"""

    provider: str
    client_id: str
    tenant_id: Optional[str] = None
    token_url: Optional[str] = None
    scope: Optional[str] = None
    sender_email: Optional[str] = None
    grant_type: str
    has_refresh_token: bool
    token_expires_at: Optional[datetime] = None
    is_active: bool


def get_oauth_service(db: Session = Depends(get_db)) -> MailOAuthService:
    return MailOAuthService(db)


def _out(config: EmailOAuthConfig) -> OAuthConfigOut:
    return OAuthConfigOut(
        provider=config.provider,
        client_id=config.client_id,
        tenant_id=config.tenant_id,
        token_url=config.token_url,
        scope=config.scope,
        sender_email=config.sender_email,
        grant_type=config.grant_type,
        has_refresh_token=bool(config.refresh_token),
        token_expires_at=config.token_expires_at,
        is_active=config.is_active,
    )


@router.get("/oauth", response_model=OAuthConfigOut)
def get_config(service: MailOAuthService = Depends(get_oauth_service), admin: Identity = Depends(require_admin)):
    return _out(service.get_active_config())


@router.put("/oauth", response_model=OAuthConfigOut)
def save_config(
    payload: OAuthConfigIn,
    service: MailOAuthService = Depends(get_oauth_service),
    admin: Identity = Depends(require_admin),
):
    return _out(service.save_config(**payload.model_dump()))


@router.post("/oauth/refresh", response_model=OAuthConfigOut)
def refresh_token(service: MailOAuthService = Depends(get_oauth_service), admin: Identity = Depends(require_admin)):
    """Force a token refresh against the provider"""
    config = service.get_active_config()
    service.refresh_access_token(config)
    return _out(config)
