"""
Group-scoped visibility and permission rules.

Every content type (news, events, polls, applications, comments) goes through
the same predicates. Each rule exists twice: as a plain function over an
``AccessView`` for single-row checks, and as a SQLAlchemy clause for list
queries. Both must agree.

Read rules
    manage mode: author, or targets intersect the managed groups.
    public mode: author, or published (and publish time reached) and either
    untargeted or targeted at one of the user's member/managed groups.
    Global admins see everything in both modes.

Write rule
    admin, author, or a non-empty target set intersecting the managed groups.
    Untargeted content is never editable by a group admin.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import FrozenSet, Iterable, Optional

from sqlalchemy import Column, Table, and_, or_, select, true

from app.core.errors import AuthorizationError
from app.core.identity import Identity


class ViewMode(str, Enum):
    PUBLIC = "public"
    MANAGE = "manage"


@dataclass(frozen=True)
class AccessView:
    author_id: Optional[int]
    is_published: bool
    published_at: Optional[datetime]
    target_group_ids: FrozenSet[int]


def access_view(item) -> AccessView:
    """Build the access facts of a News/Event/Poll row."""
    return AccessView(
        author_id=item.author_id,
        is_published=bool(getattr(item, "is_published", True)),
        published_at=getattr(item, "published_at", None),
        target_group_ids=frozenset(group.id for group in item.target_groups),
    )


def can_view(identity: Identity, item: AccessView, mode: ViewMode = ViewMode.PUBLIC, now: datetime | None = None) -> bool:
    if identity.is_admin:
        return True
    if item.author_id is not None and item.author_id == identity.user_id:
        return True

    if mode == ViewMode.MANAGE:
        return bool(item.target_group_ids & identity.managed_group_ids)

    if not item.is_published:
        return False
    now = now or datetime.utcnow()
    if item.published_at is not None and item.published_at > now:
        return False
    if not item.target_group_ids:
        return True
    return bool(item.target_group_ids & identity.reachable_group_ids)


def can_edit(identity: Identity, item: AccessView) -> bool:
    if identity.is_admin:
        return True
    if item.author_id is not None and item.author_id == identity.user_id:
        return True
    return bool(item.target_group_ids) and bool(item.target_group_ids & identity.managed_group_ids)


def ensure_can_edit(identity: Identity, item: AccessView, entity: str, action: str = "edit") -> None:
    if not can_edit(identity, item):
        raise AuthorizationError(
            f"You need to be the author, a global admin or an admin of one of its target groups to {action} this {entity}",
            "insufficient_scope",
        )


def check_target_groups(identity: Identity, target_group_ids: Iterable[int]) -> None:
    """Group admins may only target groups they administer. All or nothing."""
    if not identity.is_group_admin:
        return
    requested = frozenset(target_group_ids)
    outside = requested - identity.managed_group_ids
    if outside:
        raise AuthorizationError(
            f"You can only target groups you administer (not allowed: {sorted(outside)})",
            "target_group_not_managed",
        )


def can_manage_app_group(identity: Identity, is_private: bool, linked_group_ids: Iterable[int]) -> bool:
    if identity.is_admin:
        return True
    if not is_private:
        return False
    return bool(frozenset(linked_group_ids) & identity.managed_group_ids)


@dataclass(frozen=True)
class TargetBinding:
    """How an entity stores its target groups."""

    model: type
    link_table: Table
    link_column: Column
    published_column: Optional[Column] = None
    published_at_column: Optional[Column] = None

    def targeted_at(self, group_ids: FrozenSet[int]):
        return (
            select(self.link_column)
            .where(self.link_column == self.model.id, self.link_table.c.group_id.in_(sorted(group_ids)))
            .exists()
        )

    def untargeted(self):
        return ~select(self.link_column).where(self.link_column == self.model.id).exists()


def visibility_clause(identity: Identity, binding: TargetBinding, mode: ViewMode = ViewMode.PUBLIC, now: datetime | None = None):
    """WHERE clause selecting the rows ``identity`` may see, None when unrestricted."""
    if identity.is_admin:
        return None

    own = binding.model.author_id == identity.user_id

    if mode == ViewMode.MANAGE:
        managed = identity.managed_group_ids
        if not managed:
            return own
        return or_(own, binding.targeted_at(managed))

    now = now or datetime.utcnow()
    published = binding.published_column.is_(True) if binding.published_column is not None else true()
    if binding.published_at_column is not None:
        published = and_(
            published,
            or_(binding.published_at_column.is_(None), binding.published_at_column <= now),
        )

    reachable = identity.reachable_group_ids
    audience = binding.untargeted()
    if reachable:
        audience = or_(audience, binding.targeted_at(reachable))

    return or_(own, and_(published, audience))
