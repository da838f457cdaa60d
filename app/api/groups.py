from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.auth import get_identity, require_admin
from app.core.db import get_db
from app.core.identity import Identity
from app.schemas.app_group import AppGroupResponse
from app.schemas.common import IdList, Message, UserRef
from app.schemas.group import GroupCreate, GroupResponse, GroupUpdate
from app.services import groups as group_service, membership

router = APIRouter()


@router.get("", response_model=List[GroupResponse])
def list_groups(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    """All groups, inactive ones only for admins"""
    return group_service.list_groups(db, include_inactive=identity.is_admin)


@router.post("", response_model=GroupResponse, status_code=201)
def create_group(payload: GroupCreate, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return group_service.create_group(db, payload.model_dump())


@router.get("/{group_id}", response_model=GroupResponse)
def get_group(group_id: int, db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return group_service.get_group(db, group_id)


@router.put("/{group_id}", response_model=GroupResponse)
def update_group(
    group_id: int, payload: GroupUpdate, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)
):
    return group_service.update_group(db, group_id, payload.model_dump(exclude_unset=True))


@router.delete("/{group_id}", response_model=Message)
def delete_group(group_id: int, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    group_service.delete_group(db, group_id)
    return {"message": f"Group {group_id} deleted"}


@router.get("/{group_id}/members", response_model=List[UserRef])
def list_members(group_id: int, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    group_service.get_group(db, group_id)
    return membership.members_of(db, group_id)


@router.put("/{group_id}/members", response_model=List[UserRef])
def set_members(
    group_id: int, payload: IdList, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)
):
    """Replace the member set"""
    membership.set_group_members(db, group_id, payload.ids)
    return membership.members_of(db, group_id)


@router.get("/{group_id}/admins", response_model=List[UserRef])
def list_admins(group_id: int, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    group_service.get_group(db, group_id)
    return membership.admins_of(db, group_id)


@router.put("/{group_id}/admins", response_model=List[UserRef])
def set_admins(
    group_id: int, payload: IdList, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)
):
    """Replace the administrator set"""
    membership.set_group_admins(db, group_id, payload.ids)
    return membership.admins_of(db, group_id)


@router.get("/{group_id}/app-groups", response_model=List[AppGroupResponse])
def list_app_group_links(group_id: int, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return group_service.get_group(db, group_id).app_groups


@router.put("/{group_id}/app-groups", response_model=List[AppGroupResponse])
def set_app_group_links(
    group_id: int, payload: IdList, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)
):
    """Replace the linked app groups"""
    membership.set_app_group_links(db, group_id, payload.ids)
    group = group_service.get_group(db, group_id)
    db.refresh(group)
    return group.app_groups
