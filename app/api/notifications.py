from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session
from app.api.auth import get_identity
from app.api.pagination import PageParams, page_params
from app.core.db import get_db
from app.core.identity import Identity
from app.schemas.common import page_envelope
from app.services import notifications

router = APIRouter()


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    title: str
    message: Optional[str] = None
    link: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None


@router.get("")
def list_notifications(
    unread_only: bool = False,
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    items, total = notifications.list_notifications(db, identity.user_id, paging.page, paging.page_size, unread_only)
    return page_envelope(
        "notifications", [NotificationResponse.model_validate(n) for n in items], total, paging.page, paging.page_size
    )


@router.get("/unread-count")
def unread_count(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return {"count": notifications.unread_count(db, identity.user_id)}


@router.post("/read-all")
def mark_all_read(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return {"updated": notifications.mark_all_read(db, identity.user_id)}


@router.post("/{notification_id}/read", response_model=NotificationResponse)
def mark_read(notification_id: int, db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return notifications.mark_read(db, identity.user_id, notification_id)
