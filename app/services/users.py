import logging
from datetime import datetime
from typing import List, Tuple

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, StoreError, ValidationError
from app.core.security import hash_password
from app.models.app_group import ApplicationClick
from app.models.associations import event_tags, event_target_groups
from app.models.chat import ChatMessage
from app.models.comment import Comment
from app.models.event import Event
from app.models.gamification import GamificationProfile, UserAchievement, XPTransaction
from app.models.news import News, NewsReaction, NewsRead
from app.models.notification import Notification
from app.models.poll import Poll, PollVote
from app.models.site import Feedback, Media
from app.models.user import User
from app.services import membership
from app.services.search import search_clause, validate_search

logger = logging.getLogger(__name__)


def get_user(db: Session, user_id: int, include_deleted: bool = False) -> User:
    user = db.get(User, user_id)
    if user is None or (user.deleted_at is not None and not include_deleted):
        raise NotFoundError("User not found", "user_not_found")
    return user


def list_users(
    db: Session,
    page: int,
    page_size: int,
    search: str | None = None,
    role: str | None = None,
    include_deleted: bool = False,
) -> Tuple[List[User], int]:
    query = db.query(User)
    if not include_deleted:
        query = query.filter(User.deleted_at.is_(None))
    if role:
        query = query.filter(User.role == role)
    term = validate_search(search)
    if term:
        query = query.filter(search_clause(term, User.username, User.email, User.first_name, User.last_name))
    total = query.count()
    users = query.order_by(User.username).offset((page - 1) * page_size).limit(page_size).all()
    return users, total


def _ensure_unique(db: Session, username: str | None, email: str | None, exclude_id: int | None = None) -> None:
    conditions = []
    if username:
        conditions.append(func.lower(User.username) == username.lower())
    if email:
        conditions.append(func.lower(User.email) == email.lower())
    if not conditions:
        return
    query = db.query(User).filter(or_(*conditions))
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    existing = query.first()
    if existing is not None:
        if username and existing.username.lower() == username.lower():
            raise ConflictError("Username already taken", "duplicate_username")
        raise ConflictError("Email already registered", "duplicate_email")


def create_user(db: Session, data: dict) -> User:
    data = dict(data)
    group_ids = data.pop("group_ids", None) or []
    _ensure_unique(db, data.get("username"), data.get("email"))
    password = data.pop("password")
    user = User(**data, password_hash=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    if group_ids:
        membership.set_user_groups(db, user.id, group_ids)
        db.refresh(user)
    logger.info(f"✅ User {user.username} created")
    return user


def update_user(db: Session, user_id: int, data: dict) -> User:
    user = get_user(db, user_id)
    data = dict(data)
    _ensure_unique(db, data.get("username"), data.get("email"), exclude_id=user.id)
    password = data.pop("password", None)
    if password:
        user.password_hash = hash_password(password)
    for key, value in data.items():
        setattr(user, key, value)
    db.commit()
    db.refresh(user)
    return user


def soft_delete_user(db: Session, user_id: int, acting_user_id: int) -> None:
    if user_id == acting_user_id:
        raise ValidationError("You cannot delete your own account", "cannot_delete_self")
    user = get_user(db, user_id)
    user.deleted_at = datetime.utcnow()
    user.is_active = False
    db.commit()


def restore_user(db: Session, user_id: int) -> User:
    user = get_user(db, user_id, include_deleted=True)
    user.deleted_at = None
    user.is_active = True
    db.commit()
    db.refresh(user)
    return user


def _delete_owned_rows(db: Session, user_id: int) -> None:
    for model, column in (
        (NewsReaction, NewsReaction.user_id),
        (NewsRead, NewsRead.user_id),
        (ApplicationClick, ApplicationClick.user_id),
        (Notification, Notification.user_id),
        (Comment, Comment.user_id),
        (Feedback, Feedback.user_id),
        (PollVote, PollVote.user_id),
        (GamificationProfile, GamificationProfile.user_id),
        (UserAchievement, UserAchievement.user_id),
        (XPTransaction, XPTransaction.user_id),
    ):
        db.execute(delete(model).where(column == user_id))
    db.execute(delete(ChatMessage).where(or_(ChatMessage.sender_id == user_id, ChatMessage.recipient_id == user_id)))


def _detach_authored_content(db: Session, user_id: int) -> None:
    db.execute(update(News).where(News.author_id == user_id).values(author_id=None))
    db.execute(update(Poll).where(Poll.author_id == user_id).values(author_id=None))
    db.execute(update(Media).where(Media.uploaded_by == user_id).values(uploaded_by=None))
    db.execute(update(Comment).where(Comment.moderated_by == user_id).values(moderated_by=None))


def _delete_authored_events(db: Session, user_id: int) -> None:
    authored = select(Event.id).where(Event.author_id == user_id)
    db.execute(delete(event_target_groups).where(event_target_groups.c.event_id.in_(authored)))
    db.execute(delete(event_tags).where(event_tags.c.event_id.in_(authored)))
    db.execute(delete(Event).where(Event.author_id == user_id))


def purge_user(db: Session, user_id: int, acting_user_id: int) -> None:
    """Permanently delete a user and everything hanging off them, all or nothing."""
    if user_id == acting_user_id:
        raise ValidationError("You cannot delete your own account", "cannot_delete_self")
    user = get_user(db, user_id, include_deleted=True)
    try:
        _delete_owned_rows(db, user.id)
        _detach_authored_content(db, user.id)
        _delete_authored_events(db, user.id)
        user.groups = []
        user.administered_groups = []
        db.delete(user)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"❌ Permanent delete of user {user_id} rolled back: {exc}")
        raise StoreError("Could not delete user") from exc
    logger.info(f"❌ User {user_id} permanently deleted by {acting_user_id}")
