import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import ConflictError, NotFoundError, StoreError
from app.models.app_group import AppGroup
from app.models.associations import event_target_groups, news_target_groups, poll_target_groups
from app.models.group import Group

logger = logging.getLogger(__name__)

TARGET_TABLES = (news_target_groups, event_target_groups, poll_target_groups)


def list_groups(db: Session, include_inactive: bool = True) -> List[Group]:
    query = db.query(Group)
    if not include_inactive:
        query = query.filter(Group.is_active.is_(True))
    return query.order_by(Group.name).all()


def get_group(db: Session, group_id: int) -> Group:
    group = db.get(Group, group_id)
    if group is None:
        raise NotFoundError("Group not found", "group_not_found")
    return group


def create_group(db: Session, data: dict) -> Group:
    group = Group(**data)
    db.add(group)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("A group with this name already exists", "duplicate_group_name") from exc
    db.refresh(group)
    logger.info(f"✅ Group {group.name} created")
    return group


def update_group(db: Session, group_id: int, data: dict) -> Group:
    group = get_group(db, group_id)
    for key, value in data.items():
        setattr(group, key, value)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("A group with this name already exists", "duplicate_group_name") from exc
    db.refresh(group)
    return group


def delete_group(db: Session, group_id: int) -> None:
    """
    Hard delete. Refused while the group owns private app groups or restricts
    any content, since dropping the link would make that content public.
    """
    group = get_group(db, group_id)
    if db.query(AppGroup.id).filter(AppGroup.owner_group_id == group_id).first() is not None:
        raise ConflictError("The group still owns private app groups", "group_in_use")
    for table in TARGET_TABLES:
        if db.execute(select(table.c.group_id).where(table.c.group_id == group_id).limit(1)).first() is not None:
            raise ConflictError("The group still restricts content", "group_in_use")
    try:
        # Membership, admin and app group links go with the secondary relationships
        db.delete(group)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError("Could not delete group") from exc
    logger.info(f"❌ Group {group_id} deleted")
