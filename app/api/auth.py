from datetime import datetime
from fastapi import APIRouter, Depends, WebSocket
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from app.core.db import get_db
from app.core.errors import AuthenticationError, AuthorizationError
from app.core.identity import Identity
from app.core.security import create_access_token, decode_access_token, verify_password
from app.core.tasks import TaskQueue, get_task_queue
from app.models.user import User
from app.schemas.user import MeResponse, UserLogin, UserResponse
from app.services.gamification import award_xp_job
from app.services.membership import load_identity
import logging

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login", auto_error=False)

router = APIRouter()


def user_from_token(db: Session, token: str | None) -> User:
    """Resolve a bearer token to an active, non-deleted user"""
    if not token:
        raise AuthenticationError("Authentication required", "authentication_required")
    payload = decode_access_token(token)
    if payload is None:
        raise AuthenticationError("Invalid or expired token", "invalid_token")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid token subject", "invalid_token")

    user = db.get(User, user_id)
    if user is None or user.deleted_at is not None:
        raise AuthenticationError("User not found", "invalid_token")
    if not user.is_active:
        raise AuthenticationError("Account is disabled", "account_disabled")
    return user


def get_current_user(token: str | None = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    return user_from_token(db, token)


def get_identity(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Identity:
    # Managed groups are re-read on every request, never taken from the token
    return load_identity(db, user)


def require_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.is_admin:
        raise AuthorizationError("Admin rights required", "admin_required")
    return identity


def require_author(identity: Identity = Depends(get_identity)) -> Identity:
    if not identity.can_author:
        raise AuthorizationError("Editor, group admin or admin rights required", "cannot_author")
    return identity


def require_group_admin(identity: Identity = Depends(get_identity)) -> Identity:
    if not (identity.is_admin or identity.is_group_admin):
        raise AuthorizationError("Group admin rights required", "group_admin_required")
    return identity


def websocket_token(websocket: WebSocket) -> str | None:
    """Bearer token from the Authorization header, falling back to ?token="""
    header = websocket.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip()
    return websocket.query_params.get("token")


def me_payload(user: User, identity: Identity) -> MeResponse:
    return MeResponse(
        **UserResponse.model_validate(user).model_dump(),
        effective_role=identity.role.name,
        managed_group_ids=sorted(identity.managed_group_ids),
    )


@router.post("/login")
def login(
    credentials: UserLogin,
    db: Session = Depends(get_db),
    tasks: TaskQueue = Depends(get_task_queue),
):
    """Exchange email and password for a bearer token"""
    user = (
        db.query(User)
        .filter(User.email == credentials.email, User.deleted_at.is_(None))
        .first()
    )
    if not user or not verify_password(credentials.password, user.password_hash):
        raise AuthenticationError("Invalid email or password", "invalid_credentials")
    if not user.is_active:
        raise AuthenticationError("Account is disabled", "account_disabled")

    token = create_access_token({"sub": str(user.id)})
    logger.info(f"✅ User {user.id} logged in")
    tasks.enqueue("award_xp", award_xp_job, user.id, "daily_login", int(datetime.utcnow().strftime("%Y%m%d")))

    return {
        "access_token": token,
        "token_type": "bearer",
        "user_name": user.username,
    }


@router.get("/me", response_model=MeResponse)
def me(user: User = Depends(get_current_user), identity: Identity = Depends(get_identity)):
    return me_payload(user, identity)
