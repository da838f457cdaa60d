"""
In-app notifications and the "new content" fan-out job.

``notify_new_content`` runs on the task queue with its own session. It is
never awaited by the request that published the content.
"""

import logging
from typing import List, Optional, Set, Tuple

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from app.core.config import PORTAL_URL
from app.core.db import SessionLocal
from app.core.errors import NotFoundError
from app.models.associations import group_admins, user_groups
from app.models.event import Event
from app.models.news import News
from app.models.notification import Notification
from app.models.poll import Poll
from app.models.site import EmailOAuthConfig
from app.models.user import User
from app.services.mail_oauth import MailOAuthService
from app.services.mailer import SMTPMailer

logger = logging.getLogger(__name__)

CONTENT_MODELS = {"news": News, "event": Event, "poll": Poll}
CONTENT_LABELS = {"news": "New article", "event": "New event", "poll": "New poll"}


def _link_for(content_type: str, item) -> str:
    if content_type == "news":
        return f"/news/{item.slug}"
    if content_type == "event":
        return f"/events/{item.slug}"
    return f"/polls/{item.id}"


def audience_of(db: Session, item) -> List[User]:
    """Active users allowed to read ``item``: everyone when untargeted, else members and admins of its groups."""
    query = db.query(User).filter(User.is_active.is_(True), User.deleted_at.is_(None))
    group_ids = [g.id for g in item.target_groups]
    if group_ids:
        members = select(user_groups.c.user_id).where(user_groups.c.group_id.in_(group_ids))
        admins = select(group_admins.c.user_id).where(group_admins.c.group_id.in_(group_ids))
        query = query.filter(or_(User.id.in_(members), User.id.in_(admins)))
    return query.order_by(User.id).all()


def _default_mailer(db: Session) -> SMTPMailer:
    oauth = db.query(EmailOAuthConfig).filter(EmailOAuthConfig.is_active.is_(True)).first()
    if oauth is None:
        return SMTPMailer()
    service = MailOAuthService(db)
    return SMTPMailer(
        username=oauth.sender_email or "",
        sender=oauth.sender_email or SMTPMailer().sender,
        token_provider=lambda: service.get_valid_access_token(oauth),
    )


def notify_new_content(content_type: str, content_id: int, session_factory=SessionLocal, mailer: Optional[SMTPMailer] = None) -> int:
    """Create a notification for every reader of the new item and mail them. Returns the notification count."""
    model = CONTENT_MODELS[content_type]
    with session_factory() as db:
        item = db.get(model, content_id)
        if item is None or item.deleted_at is not None:
            logger.warning(f"🔍 {content_type} {content_id} vanished before notifications went out")
            return 0

        title = f"{CONTENT_LABELS[content_type]}: {item.title}"
        link = _link_for(content_type, item)
        recipients = [u for u in audience_of(db, item) if u.id != item.author_id]
        for user in recipients:
            db.add(Notification(user_id=user.id, type=f"new_{content_type}", title=title, link=link))
        db.commit()
        logger.info(f"🔔 {len(recipients)} notifications created for {content_type} {content_id}")

        mailer = mailer or _default_mailer(db)
        if mailer.enabled:
            body = f"{title}\n\n{PORTAL_URL}{link}\n"
            mailer.send([u.email for u in recipients], title, body)
        return len(recipients)


def list_notifications(db: Session, user_id: int, page: int, page_size: int, unread_only: bool = False) -> Tuple[list, int]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return items, total


def unread_count(db: Session, user_id: int) -> int:
    return db.query(Notification).filter(Notification.user_id == user_id, Notification.is_read.is_(False)).count()


def mark_read(db: Session, user_id: int, notification_id: int) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification not found", "notification_not_found")
    notification.is_read = True
    db.commit()
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .update({Notification.is_read: True}, synchronize_session=False)
    )
    db.commit()
    return updated


def notify_users(db: Session, user_ids: Set[int], type_: str, title: str, message: str | None = None, link: str | None = None) -> None:
    for user_id in user_ids:
        db.add(Notification(user_id=user_id, type=type_, title=title, message=message, link=link))
    db.commit()
