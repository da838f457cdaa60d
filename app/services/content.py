"""
Shared repository logic for targeted content (news, events, polls).

Subclasses describe their model, how target groups are stored, their search
columns and filters. Read paths filter silently through the visibility clause;
write paths reject explicitly.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Query, Session

from app.core.errors import AuthorizationError, ConflictError, NotFoundError, StoreError, ValidationError
from app.core.identity import Identity
from app.core.tasks import TaskQueue
from app.models.group import Group
from app.models.taxonomy import Tag
from app.services.gamification import award_xp_job
from app.services.notifications import notify_new_content
from app.services.search import search_clause, validate_search
from app.services.visibility import (
    TargetBinding, ViewMode, access_view, can_view, check_target_groups, ensure_can_edit, visibility_clause,
)

logger = logging.getLogger(__name__)


class ContentRepository:
    model = None
    binding: TargetBinding = None
    entity = "content"
    content_type = "content"
    search_columns: tuple = ()
    # Some read paths hide existence instead of answering 403
    hide_forbidden = False
    publish_action: Optional[str] = None
    has_tags = False

    def __init__(self, db: Session, tasks: TaskQueue | None = None):
        self.db = db
        self.tasks = tasks

    # reads

    def base_query(self) -> Query:
        return self.db.query(self.model).filter(self.model.deleted_at.is_(None))

    def visible_query(self, identity: Identity, mode: ViewMode = ViewMode.PUBLIC, now: datetime | None = None) -> Query:
        query = self.base_query()
        clause = visibility_clause(identity, self.binding, mode, now)
        if clause is not None:
            query = query.filter(clause)
        return query

    def apply_filters(self, query: Query, filters: dict) -> Query:
        return query

    def order(self, query: Query) -> Query:
        return query.order_by(self.model.created_at.desc(), self.model.id.desc())

    def list(
        self,
        identity: Identity,
        page: int = 1,
        page_size: int = 20,
        mode: ViewMode = ViewMode.PUBLIC,
        search: str | None = None,
        **filters,
    ) -> Tuple[List, int]:
        query = self.visible_query(identity, mode)
        term = validate_search(search)
        if term:
            query = query.filter(search_clause(term, *self.search_columns))
        query = self.apply_filters(query, {k: v for k, v in filters.items() if v is not None})
        total = query.order_by(None).count()
        items = self.order(query).offset((page - 1) * page_size).limit(page_size).all()
        return items, total

    def find(self, item_id: int | None = None, slug: str | None = None):
        query = self.base_query()
        if item_id is not None:
            item = query.filter(self.model.id == item_id).first()
        else:
            item = query.filter(self.model.slug == slug).first()
        if item is None:
            raise NotFoundError(f"{self.entity.capitalize()} not found", f"{self.content_type}_not_found")
        return item

    def get(self, identity: Identity, item_id: int | None = None, slug: str | None = None, mode: ViewMode = ViewMode.PUBLIC):
        item = self.find(item_id, slug)
        if not can_view(identity, access_view(item), mode):
            if self.hide_forbidden:
                raise NotFoundError(f"{self.entity.capitalize()} not found", f"{self.content_type}_not_found")
            raise AuthorizationError(
                f"You are not in any group this {self.entity} is restricted to", "not_in_target_groups"
            )
        return item

    def get_for_edit(self, identity: Identity, item_id: int, action: str = "edit"):
        item = self.find(item_id)
        ensure_can_edit(identity, access_view(item), self.entity, action)
        return item

    # writes

    def _resolve_groups(self, group_ids) -> List[Group]:
        ids = set(group_ids)
        if not ids:
            return []
        groups = self.db.query(Group).filter(Group.id.in_(sorted(ids))).all()
        missing = ids - {g.id for g in groups}
        if missing:
            raise ValidationError(f"Unknown groups: {sorted(missing)}", "unknown_groups")
        return groups

    def _resolve_tags(self, tag_ids) -> List[Tag]:
        ids = set(tag_ids)
        if not ids:
            return []
        tags = self.db.query(Tag).filter(Tag.id.in_(sorted(ids)), Tag.deleted_at.is_(None)).all()
        missing = ids - {t.id for t in tags}
        if missing:
            raise ValidationError(f"Unknown tags: {sorted(missing)}", "unknown_tags")
        return tags

    def apply_fields(self, item, data: dict, creating: bool) -> None:
        for key, value in data.items():
            setattr(item, key, value)

    def _is_live(self, item) -> bool:
        return can_view_publicly(item)

    def create(self, identity: Identity, payload: dict):
        if not identity.can_author:
            raise AuthorizationError(f"Only editors and admins can create a {self.entity}", "cannot_author")
        data = dict(payload)
        target_ids = data.pop("target_group_ids", None) or []
        tag_ids = data.pop("tag_ids", None) or []

        check_target_groups(identity, target_ids)

        item = self.model(author_id=identity.user_id)
        try:
            self.apply_fields(item, data, creating=True)
            if self.has_tags:
                item.tags = self._resolve_tags(tag_ids)
            item.target_groups = self._resolve_groups(target_ids)
            self.db.add(item)
            self.db.commit()
        except (AuthorizationError, ConflictError, ValidationError):
            self.db.rollback()
            raise
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(f"A {self.entity} with this slug already exists", "duplicate_slug") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(f"Could not create {self.entity}") from exc
        self.db.refresh(item)

        logger.info(f"✅ {self.entity} {item.id} created by user {identity.user_id}")
        if self._is_live(item):
            self.on_published(item, identity)
        return item

    def update(self, identity: Identity, item_id: int, payload: dict):
        item = self.get_for_edit(identity, item_id)
        was_live = self._is_live(item)
        data = dict(payload)
        target_ids = data.pop("target_group_ids", None)
        tag_ids = data.pop("tag_ids", None)

        try:
            if target_ids is not None:
                check_target_groups(identity, target_ids)
                item.target_groups = self._resolve_groups(target_ids)
            if self.has_tags and tag_ids is not None:
                item.tags = self._resolve_tags(tag_ids)
            self.apply_fields(item, data, creating=False)
            self.db.commit()
        except (AuthorizationError, ConflictError, ValidationError):
            self.db.rollback()
            raise
        except IntegrityError as exc:
            self.db.rollback()
            raise ConflictError(f"A {self.entity} with this slug already exists", "duplicate_slug") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(f"Could not update {self.entity}") from exc
        self.db.refresh(item)

        if not was_live and self._is_live(item):
            self.on_published(item, identity)
        return item

    def delete(self, identity: Identity, item_id: int) -> None:
        """Soft delete. Tag and target links go, comments stay."""
        item = self.get_for_edit(identity, item_id, action="delete")
        item.deleted_at = datetime.utcnow()
        if self.has_tags:
            item.tags = []
        item.target_groups = []
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError(f"Could not delete {self.entity}") from exc
        logger.info(f"❌ {self.entity} {item_id} deleted by user {identity.user_id}")

    # side effects

    def on_published(self, item, identity: Identity) -> None:
        if self.tasks is None:
            return
        self.tasks.enqueue(f"notify_new_{self.content_type}", notify_new_content, self.content_type, item.id)
        if self.publish_action:
            self.tasks.enqueue("award_xp", award_xp_job, identity.user_id, self.publish_action, item.id)


def can_view_publicly(item, now: datetime | None = None) -> bool:
    if not getattr(item, "is_published", True):
        return False
    published_at = getattr(item, "published_at", None)
    return published_at is None or published_at <= (now or datetime.utcnow())
