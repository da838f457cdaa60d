"""
Group membership store.

``set_*`` operations have full replace semantics: the old links are cleared and
the new set inserted inside one transaction, so readers see either the old or
the new set and a failure leaves the old one in place.
"""

import logging
from typing import Iterable, List, Set

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, StoreError, ValidationError
from app.core.identity import Identity, resolve_role
from app.models.app_group import AppGroup
from app.models.associations import group_admins, group_app_groups, user_groups
from app.models.group import Group
from app.models.user import User

logger = logging.getLogger(__name__)


def members_of(db: Session, group_id: int) -> List[User]:
    return (
        db.query(User)
        .join(user_groups, user_groups.c.user_id == User.id)
        .filter(user_groups.c.group_id == group_id, User.deleted_at.is_(None))
        .order_by(User.username)
        .all()
    )


def admins_of(db: Session, group_id: int) -> List[User]:
    return (
        db.query(User)
        .join(group_admins, group_admins.c.user_id == User.id)
        .filter(group_admins.c.group_id == group_id, User.deleted_at.is_(None))
        .order_by(User.username)
        .all()
    )


def groups_administered_by(db: Session, user_id: int) -> Set[int]:
    rows = db.execute(select(group_admins.c.group_id).where(group_admins.c.user_id == user_id))
    return {row[0] for row in rows}


def groups_joined_by(db: Session, user_id: int) -> Set[int]:
    rows = db.execute(select(user_groups.c.group_id).where(user_groups.c.user_id == user_id))
    return {row[0] for row in rows}


def app_group_links(db: Session, app_group_id: int) -> Set[int]:
    """Groups an app group is linked to."""
    rows = db.execute(select(group_app_groups.c.group_id).where(group_app_groups.c.app_group_id == app_group_id))
    return {row[0] for row in rows}


def load_identity(db: Session, user: User) -> Identity:
    """Fresh identity: managed groups come from the store on every call."""
    managed = groups_administered_by(db, user.id)
    return Identity(
        user_id=user.id,
        role=resolve_role(user.role, managed),
        member_group_ids=frozenset(groups_joined_by(db, user.id)),
    )


def _require_group(db: Session, group_id: int) -> Group:
    group = db.get(Group, group_id)
    if group is None:
        raise NotFoundError(f"Group {group_id} not found", "group_not_found")
    return group


def _require_ids(db: Session, model, ids: Set[int], label: str) -> None:
    if not ids:
        return
    found = {row[0] for row in db.execute(select(model.id).where(model.id.in_(sorted(ids))))}
    missing = ids - found
    if missing:
        raise ValidationError(f"Unknown {label}: {sorted(missing)}", f"unknown_{label}")


def _replace(db: Session, table, owner_column, owner_id: int, value_column, values: Set[int], what: str) -> None:
    try:
        db.execute(delete(table).where(owner_column == owner_id))
        if values:
            db.execute(
                insert(table),
                [{owner_column.name: owner_id, value_column.name: value} for value in sorted(values)],
            )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(f"❌ Replacing {what} for {owner_id} failed, previous links kept: {exc}")
        raise StoreError(f"Could not update {what}") from exc


def set_app_group_links(db: Session, group_id: int, app_group_ids: Iterable[int]) -> None:
    _require_group(db, group_id)
    ids = set(app_group_ids)
    _require_ids(db, AppGroup, ids, "app_groups")
    _replace(db, group_app_groups, group_app_groups.c.group_id, group_id, group_app_groups.c.app_group_id, ids, "app group links")
    logger.info(f"Group {group_id} now linked to app groups {sorted(ids)}")


def set_group_admins(db: Session, group_id: int, user_ids: Iterable[int]) -> None:
    _require_group(db, group_id)
    ids = set(user_ids)
    _require_ids(db, User, ids, "users")
    _replace(db, group_admins, group_admins.c.group_id, group_id, group_admins.c.user_id, ids, "group admins")
    logger.info(f"Group {group_id} admins set to {sorted(ids)}")


def set_user_groups(db: Session, user_id: int, group_ids: Iterable[int]) -> None:
    if db.get(User, user_id) is None:
        raise NotFoundError(f"User {user_id} not found", "user_not_found")
    ids = set(group_ids)
    _require_ids(db, Group, ids, "groups")
    _replace(db, user_groups, user_groups.c.user_id, user_id, user_groups.c.group_id, ids, "group memberships")


def set_group_members(db: Session, group_id: int, user_ids: Iterable[int]) -> None:
    _require_group(db, group_id)
    ids = set(user_ids)
    _require_ids(db, User, ids, "users")
    _replace(db, user_groups, user_groups.c.group_id, group_id, user_groups.c.user_id, ids, "group members")
