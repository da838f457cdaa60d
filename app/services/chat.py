import logging
from typing import List, Set, Tuple

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.core.identity import Identity
from app.models.chat import ChatMessage
from app.models.group import Group
from app.models.user import User
from app.services import membership

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 4000


def _active_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None or not user.is_active or user.deleted_at is not None:
        raise NotFoundError("Recipient not found", "user_not_found")
    return user


def _ensure_in_group(db: Session, identity: Identity, group_id: int) -> Group:
    group = db.get(Group, group_id)
    if group is None:
        raise NotFoundError("Group not found", "group_not_found")
    if not identity.is_admin and group_id not in identity.reachable_group_ids:
        raise AuthorizationError("You are not a member of this group", "not_group_member")
    return group


def message_dict(message: ChatMessage) -> dict:
    return {
        "type": "message",
        "id": message.id,
        "sender_id": message.sender_id,
        "sender_username": message.sender.username if message.sender else None,
        "recipient_id": message.recipient_id,
        "group_id": message.group_id,
        "content": message.content,
        "created_at": message.created_at.isoformat() if message.created_at else None,
    }


def send_message(
    db: Session,
    identity: Identity,
    content: str,
    recipient_id: int | None = None,
    group_id: int | None = None,
) -> Tuple[ChatMessage, Set[int]]:
    """Persist a message and return it with the ids of the users it goes to."""
    if (recipient_id is None) == (group_id is None):
        raise ValidationError("Send to exactly one of recipient_id or group_id", "invalid_chat_target")
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message cannot be empty", "empty_message")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Messages are limited to {MAX_MESSAGE_LENGTH} characters", "message_too_long")

    if recipient_id is not None:
        _active_user(db, recipient_id)
        audience = {identity.user_id, recipient_id}
    else:
        _ensure_in_group(db, identity, group_id)
        audience = {u.id for u in membership.members_of(db, group_id)}
        audience |= {u.id for u in membership.admins_of(db, group_id)}
        audience.add(identity.user_id)

    message = ChatMessage(sender_id=identity.user_id, recipient_id=recipient_id, group_id=group_id, content=content)
    db.add(message)
    db.commit()
    db.refresh(message)
    return message, audience


def contacts(db: Session, identity: Identity) -> dict:
    users = (
        db.query(User)
        .filter(User.id != identity.user_id, User.is_active.is_(True), User.deleted_at.is_(None))
        .order_by(User.username)
        .all()
    )
    group_ids = sorted(identity.reachable_group_ids)
    groups = db.query(Group).filter(Group.id.in_(group_ids)).order_by(Group.name).all() if group_ids else []
    return {"users": users, "groups": groups}


def _conversation(db: Session, identity: Identity, target_id: int | None, group_id: int | None):
    if group_id:
        _ensure_in_group(db, identity, group_id)
        return db.query(ChatMessage).filter(ChatMessage.group_id == group_id)
    if target_id:
        me = identity.user_id
        return db.query(ChatMessage).filter(
            or_(
                and_(ChatMessage.sender_id == me, ChatMessage.recipient_id == target_id),
                and_(ChatMessage.sender_id == target_id, ChatMessage.recipient_id == me),
            )
        )
    raise ValidationError("target_id or group_id is required", "invalid_chat_target")


def history(
    db: Session, identity: Identity, target_id: int | None = None, group_id: int | None = None, limit: int = 50, offset: int = 0
) -> List[ChatMessage]:
    """Most recent first."""
    query = _conversation(db, identity, target_id, group_id)
    return query.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).offset(offset).limit(limit).all()


def delete_message(db: Session, identity: Identity, message_id: int) -> None:
    message = db.get(ChatMessage, message_id)
    if message is None:
        raise NotFoundError("Message not found", "message_not_found")
    if message.sender_id != identity.user_id:
        raise AuthorizationError("You can only delete your own messages", "not_message_sender")
    db.delete(message)
    db.commit()


def clear_conversation(db: Session, identity: Identity, target_id: int | None = None, group_id: int | None = None) -> int:
    if group_id and not (identity.is_admin or group_id in identity.managed_group_ids):
        raise AuthorizationError("Only group admins can clear a group chat", "cannot_clear_group_chat")
    query = _conversation(db, identity, target_id, group_id)
    deleted = query.delete(synchronize_session=False)
    db.commit()
    logger.info(f"💬 User {identity.user_id} cleared {deleted} chat messages")
    return deleted
