from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.api.auth import require_admin
from app.api.pagination import PageParams, page_params
from app.core.db import get_db
from app.core.identity import Identity
from app.schemas.common import IdList, Message, page_envelope
from app.schemas.user import UserCreate, UserResponse, UserUpdate
from app.services import membership, users as user_service

router = APIRouter()


@router.get("")
def list_users(
    search: Optional[str] = None,
    role: Optional[str] = None,
    include_deleted: bool = False,
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Paginated user list (admin only)"""
    items, total = user_service.list_users(
        db, paging.page, paging.page_size, search=search, role=role, include_deleted=include_deleted
    )
    return page_envelope(
        "users", [UserResponse.model_validate(u) for u in items], total, paging.page, paging.page_size
    )


@router.post("", response_model=UserResponse, status_code=201)
def create_user(payload: UserCreate, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return user_service.create_user(db, payload.model_dump())


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: int, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return user_service.get_user(db, user_id, include_deleted=True)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int, payload: UserUpdate, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)
):
    return user_service.update_user(db, user_id, payload.model_dump(exclude_unset=True))


@router.delete("/{user_id}", response_model=Message)
def delete_user(
    user_id: int,
    permanent: bool = Query(False),
    db: Session = Depends(get_db),
    admin: Identity = Depends(require_admin),
):
    """Soft delete by default, ?permanent=true removes the user and their data"""
    if permanent:
        user_service.purge_user(db, user_id, admin.user_id)
        return {"message": f"User {user_id} permanently deleted"}
    user_service.soft_delete_user(db, user_id, admin.user_id)
    return {"message": f"User {user_id} deleted"}


@router.post("/{user_id}/restore", response_model=UserResponse)
def restore_user(user_id: int, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return user_service.restore_user(db, user_id)


@router.put("/{user_id}/groups", response_model=UserResponse)
def set_user_groups(
    user_id: int, payload: IdList, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)
):
    """Replace the user's group memberships"""
    membership.set_user_groups(db, user_id, payload.ids)
    user = user_service.get_user(db, user_id, include_deleted=True)
    db.refresh(user)
    return user
