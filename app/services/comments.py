"""
Comments on news, applications and events.

Storage keeps the ``entity_type``/``entity_id`` pair; inside the service a
comment target is always one of the ``CommentTarget`` classes below.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import ClassVar, List, Tuple, Union

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.errors import AuthorizationError, NotFoundError, ValidationError
from app.core.identity import Identity
from app.core.tasks import TaskQueue
from app.models.comment import Comment, CommentSettings
from app.services.applications import ApplicationService
from app.services.events import EventRepository
from app.services.gamification import award_xp_job
from app.services.news import NewsRepository
from app.services.visibility import access_view, can_edit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewsTarget:
    id: int
    kind: ClassVar[str] = "news"
    setting: ClassVar[str] = "news_enabled"


@dataclass(frozen=True)
class ApplicationTarget:
    id: int
    kind: ClassVar[str] = "application"
    setting: ClassVar[str] = "applications_enabled"


@dataclass(frozen=True)
class EventTarget:
    id: int
    kind: ClassVar[str] = "event"
    setting: ClassVar[str] = "events_enabled"


CommentTarget = Union[NewsTarget, ApplicationTarget, EventTarget]
TARGET_TYPES = {cls.kind: cls for cls in (NewsTarget, ApplicationTarget, EventTarget)}


def parse_target(entity_type: str, entity_id: int) -> CommentTarget:
    target_cls = TARGET_TYPES.get(entity_type)
    if target_cls is None:
        raise ValidationError(f"Comments are not supported on {entity_type!r}", "invalid_entity_type")
    return target_cls(entity_id)


def target_of(comment: Comment) -> CommentTarget:
    return parse_target(comment.entity_type, comment.entity_id)


def get_settings(db: Session) -> CommentSettings:
    settings = db.query(CommentSettings).first()
    if settings is None:
        settings = CommentSettings(
            enabled=True,
            news_enabled=True,
            applications_enabled=False,
            events_enabled=True,
            require_moderation=False,
            max_length=1000,
        )
        db.add(settings)
        db.commit()
        db.refresh(settings)
    return settings


def update_settings(db: Session, values: dict) -> CommentSettings:
    settings = get_settings(db)
    for key, value in values.items():
        setattr(settings, key, value)
    db.commit()
    db.refresh(settings)
    return settings


class CommentService:
    def __init__(self, db: Session, tasks: TaskQueue | None = None):
        self.db = db
        self.tasks = tasks

    def _load_target(self, identity: Identity, target: CommentTarget):
        """Fetch the commented entity; raises NotFound/Authorization like a direct read would."""
        if isinstance(target, NewsTarget):
            return NewsRepository(self.db).get(identity, item_id=target.id)
        if isinstance(target, EventTarget):
            return EventRepository(self.db).get(identity, item_id=target.id)
        service = ApplicationService(self.db)
        application = service.get_application(target.id)
        if not service.can_open(identity, application):
            raise AuthorizationError("This application is not available to your groups", "not_in_target_groups")
        return application

    def _can_edit_target(self, identity: Identity, target: CommentTarget) -> bool:
        if isinstance(target, NewsTarget):
            repo = NewsRepository(self.db)
        elif isinstance(target, EventTarget):
            repo = EventRepository(self.db)
        else:
            service = ApplicationService(self.db)
            try:
                application = service.get_application(target.id)
            except NotFoundError:
                return False
            return service.can_manage(identity, application.app_group)
        try:
            item = repo.find(target.id)
        except NotFoundError:
            return False
        return can_edit(identity, access_view(item))

    @staticmethod
    def _is_moderator(identity: Identity) -> bool:
        return identity.is_admin or identity.is_editor

    def list(self, identity: Identity, target: CommentTarget, page: int, page_size: int) -> Tuple[List[Comment], int]:
        self._load_target(identity, target)
        query = self.db.query(Comment).filter(Comment.entity_type == target.kind, Comment.entity_id == target.id)
        if not self._is_moderator(identity):
            query = query.filter(or_(Comment.is_approved.is_(True), Comment.user_id == identity.user_id))
        total = query.count()
        items = query.order_by(Comment.created_at.asc(), Comment.id.asc()).offset((page - 1) * page_size).limit(page_size).all()
        return items, total

    def pending(self, identity: Identity, page: int, page_size: int) -> Tuple[List[Comment], int]:
        if not self._is_moderator(identity):
            raise AuthorizationError("Only admins and editors can moderate comments", "cannot_moderate")
        query = self.db.query(Comment).filter(or_(Comment.is_approved.is_(False), Comment.is_flagged.is_(True)))
        total = query.count()
        items = query.order_by(Comment.created_at.desc()).offset((page - 1) * page_size).limit(page_size).all()
        return items, total

    def create(self, identity: Identity, target: CommentTarget, content: str) -> Comment:
        settings = get_settings(self.db)
        if not settings.enabled or not getattr(settings, target.setting):
            raise AuthorizationError(f"Comments are disabled on {target.kind}", "comments_disabled")
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment cannot be empty", "empty_comment")
        if len(content) > settings.max_length:
            raise ValidationError(f"Comment is limited to {settings.max_length} characters", "comment_too_long")
        self._load_target(identity, target)

        comment = Comment(
            entity_type=target.kind,
            entity_id=target.id,
            user_id=identity.user_id,
            content=content,
            is_approved=not settings.require_moderation or self._is_moderator(identity),
        )
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        if self.tasks is not None:
            self.tasks.enqueue("award_xp", award_xp_job, identity.user_id, "comment_create", comment.id)
        return comment

    def _get(self, comment_id: int) -> Comment:
        comment = self.db.get(Comment, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found", "comment_not_found")
        return comment

    def update(self, identity: Identity, comment_id: int, content: str) -> Comment:
        comment = self._get(comment_id)
        if not (comment.user_id == identity.user_id or self._is_moderator(identity)):
            raise AuthorizationError("Only the author, an editor or an admin can edit this comment", "cannot_edit_comment")
        settings = get_settings(self.db)
        content = (content or "").strip()
        if not content:
            raise ValidationError("Comment cannot be empty", "empty_comment")
        if len(content) > settings.max_length:
            raise ValidationError(f"Comment is limited to {settings.max_length} characters", "comment_too_long")
        comment.content = content
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def delete(self, identity: Identity, comment_id: int) -> None:
        comment = self._get(comment_id)
        allowed = (
            comment.user_id == identity.user_id
            or self._is_moderator(identity)
            or (identity.is_group_admin and self._can_edit_target(identity, target_of(comment)))
        )
        if not allowed:
            raise AuthorizationError("You cannot delete this comment", "cannot_delete_comment")
        self.db.delete(comment)
        self.db.commit()

    def moderate(self, identity: Identity, comment_id: int, is_approved: bool | None, is_flagged: bool | None) -> Comment:
        if not self._is_moderator(identity):
            raise AuthorizationError("Only admins and editors can moderate comments", "cannot_moderate")
        comment = self._get(comment_id)
        if is_approved is not None:
            comment.is_approved = is_approved
        if is_flagged is not None:
            comment.is_flagged = is_flagged
        comment.moderated_by = identity.user_id
        comment.moderated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(comment)
        return comment
