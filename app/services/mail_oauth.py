"""
OAuth2 access tokens for the outgoing mail account.

Secrets and tokens are stored encrypted (see ``app.core.security``). A stored
access token is reused until it is within five minutes of expiry, then the
provider is asked for a new one.
"""

import logging
from datetime import datetime, timedelta

import requests
from sqlalchemy.orm import Session

from app.core.errors import ExternalServiceError, ValidationError
from app.core.security import decrypt_secret, encrypt_secret
from app.models.site import EmailOAuthConfig

logger = logging.getLogger(__name__)

REFRESH_BUFFER = timedelta(minutes=5)
REQUEST_TIMEOUT = 15

PROVIDER_DEFAULTS = {
    "microsoft": {
        "token_url": "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token",
        "scope": "https://outlook.office365.com/.default",
    },
    "google": {
        "token_url": "https://oauth2.googleapis.com/token",
        "scope": "https://mail.google.com/",
    },
}


def token_url_for(config: EmailOAuthConfig) -> str:
    if config.token_url:
        return config.token_url
    defaults = PROVIDER_DEFAULTS.get(config.provider)
    if defaults is None:
        raise ValidationError(f"No token URL configured for provider {config.provider}", "oauth_misconfigured")
    return defaults["token_url"].format(tenant=config.tenant_id or "common")


class MailOAuthService:
    def __init__(self, db: Session, http=requests, clock=datetime.utcnow):
        self.db = db
        self.http = http
        self.clock = clock

    def get_active_config(self) -> EmailOAuthConfig:
        config = self.db.query(EmailOAuthConfig).filter(EmailOAuthConfig.is_active.is_(True)).first()
        if config is None:
            raise ValidationError("No active mail OAuth configuration", "oauth_not_configured")
        return config

    def save_config(
        self,
        provider: str,
        client_id: str,
        client_secret: str,
        tenant_id: str | None = None,
        token_url: str | None = None,
        scope: str | None = None,
        sender_email: str | None = None,
        grant_type: str = "client_credentials",
        refresh_token: str | None = None,
    ) -> EmailOAuthConfig:
        if grant_type not in ("client_credentials", "refresh_token"):
            raise ValidationError(f"Unsupported grant type {grant_type}", "oauth_misconfigured")
        if grant_type == "refresh_token" and not refresh_token:
            raise ValidationError("A refresh token is required for the refresh_token grant", "oauth_misconfigured")

        config = self.db.query(EmailOAuthConfig).first() or EmailOAuthConfig()
        config.provider = provider
        config.client_id = client_id
        config.client_secret = encrypt_secret(client_secret)
        config.tenant_id = tenant_id
        config.token_url = token_url
        config.scope = scope
        config.sender_email = sender_email
        config.grant_type = grant_type
        config.refresh_token = encrypt_secret(refresh_token) if refresh_token else None
        # Credentials changed, the cached token is no longer trusted
        config.access_token = None
        config.token_expires_at = None
        config.is_active = True
        self.db.add(config)
        self.db.commit()
        self.db.refresh(config)
        return config

    def get_valid_access_token(self, config: EmailOAuthConfig | None = None) -> str:
        config = config or self.get_active_config()
        if config.access_token and config.token_expires_at:
            if config.token_expires_at - REFRESH_BUFFER > self.clock():
                return decrypt_secret(config.access_token)
        return self.refresh_access_token(config)

    def refresh_access_token(self, config: EmailOAuthConfig) -> str:
        data = {
            "client_id": config.client_id,
            "client_secret": decrypt_secret(config.client_secret),
        }
        scope = config.scope or PROVIDER_DEFAULTS.get(config.provider, {}).get("scope")
        if config.refresh_token:
            data["grant_type"] = "refresh_token"
            data["refresh_token"] = decrypt_secret(config.refresh_token)
        else:
            data["grant_type"] = "client_credentials"
        if scope:
            data["scope"] = scope

        url = token_url_for(config)
        try:
            response = self.http.post(url, data=data, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as exc:
            logger.error(f"❌ Token request to {url} failed: {exc}")
            raise ExternalServiceError("Mail provider unreachable", "oauth_provider_unreachable") from exc

        if response.status_code != 200:
            try:
                payload = response.json()
            except ValueError:
                payload = {}
            reason = payload.get("error_description") or payload.get("error") or f"HTTP {response.status_code}"
            logger.error(f"❌ Token refresh rejected: {reason}")
            raise ExternalServiceError(f"Mail provider rejected the token request: {reason}", "oauth_refresh_failed")

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise ExternalServiceError("Mail provider returned no access token", "oauth_refresh_failed")

        config.access_token = encrypt_secret(access_token)
        config.token_expires_at = self.clock() + timedelta(seconds=int(payload.get("expires_in", 3600)))
        if payload.get("refresh_token"):
            config.refresh_token = encrypt_secret(payload["refresh_token"])
        self.db.commit()
        logger.info(f"✅ Mail OAuth token refreshed, valid until {config.token_expires_at}")
        return access_token
