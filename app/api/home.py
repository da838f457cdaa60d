from typing import Dict, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from app.api.auth import get_identity, require_admin
from app.core.db import get_db
from app.core.identity import Identity
from app.schemas.common import Message
from app.schemas.event import EventResponse
from app.schemas.news import NewsResponse
from app.schemas.poll import PollResponse
from app.services import home
from app.services.home import HomeCaches, get_home_caches

router = APIRouter()


class AnnouncementIn(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    message: Optional[str] = None
    level: str = Field(default="info", pattern="^(info|success|warning|danger)$")
    is_active: bool = True
    order: int = 0


class HeroMessageIn(BaseModel):
    text: str = Field(min_length=1, max_length=500)
    is_active: bool = True
    order: int = 0


@router.get("/home")
def home_feed(
    db: Session = Depends(get_db),
    caches: HomeCaches = Depends(get_home_caches),
    identity: Identity = Depends(get_identity),
):
    """Everything the home page needs in one call"""
    feed = home.home_feed(db, identity, caches)
    feed["news"] = [NewsResponse.model_validate(n) for n in feed["news"]]
    feed["events"] = [EventResponse.model_validate(e) for e in feed["events"]]
    feed["polls"] = [PollResponse.model_validate(p) for p in feed["polls"]]
    return feed


@router.get("/settings")
def get_settings(db: Session = Depends(get_db), caches: HomeCaches = Depends(get_home_caches)):
    """Public app settings (name, logo...); no login needed"""
    return home.app_settings(db, caches)


@router.put("/settings")
def update_settings(
    values: Dict[str, str],
    db: Session = Depends(get_db),
    caches: HomeCaches = Depends(get_home_caches),
    admin: Identity = Depends(require_admin),
):
    return home.update_settings(db, caches, values)


@router.get("/announcements")
def active_announcements(
    db: Session = Depends(get_db),
    caches: HomeCaches = Depends(get_home_caches),
    identity: Identity = Depends(get_identity),
):
    return {"announcements": home.active_announcements(db, caches)}


@router.get("/admin/announcements")
def all_announcements(db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return {"announcements": home.list_announcements(db)}


@router.post("/admin/announcements", status_code=201)
def create_announcement(
    payload: AnnouncementIn,
    db: Session = Depends(get_db),
    caches: HomeCaches = Depends(get_home_caches),
    admin: Identity = Depends(require_admin),
):
    return home.save_announcement(db, caches, payload.model_dump())


@router.put("/admin/announcements/{announcement_id}")
def update_announcement(
    announcement_id: int,
    payload: AnnouncementIn,
    db: Session = Depends(get_db),
    caches: HomeCaches = Depends(get_home_caches),
    admin: Identity = Depends(require_admin),
):
    return home.save_announcement(db, caches, payload.model_dump(), announcement_id)


@router.delete("/admin/announcements/{announcement_id}", response_model=Message)
def delete_announcement(
    announcement_id: int,
    db: Session = Depends(get_db),
    caches: HomeCaches = Depends(get_home_caches),
    admin: Identity = Depends(require_admin),
):
    home.delete_announcement(db, caches, announcement_id)
    return {"message": f"Announcement {announcement_id} deleted"}


@router.get("/hero-messages")
def active_hero_messages(db: Session = Depends(get_db), caches: HomeCaches = Depends(get_home_caches)):
    return {"hero_messages": home.active_hero_messages(db, caches)}


@router.get("/admin/hero-messages")
def all_hero_messages(db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return {"hero_messages": home.list_hero_messages(db)}


@router.post("/admin/hero-messages", status_code=201)
def create_hero_message(
    payload: HeroMessageIn,
    db: Session = Depends(get_db),
    caches: HomeCaches = Depends(get_home_caches),
    admin: Identity = Depends(require_admin),
):
    return home.save_hero_message(db, caches, payload.model_dump())


@router.put("/admin/hero-messages/{message_id}")
def update_hero_message(
    message_id: int,
    payload: HeroMessageIn,
    db: Session = Depends(get_db),
    caches: HomeCaches = Depends(get_home_caches),
    admin: Identity = Depends(require_admin),
):
    return home.save_hero_message(db, caches, payload.model_dump(), message_id)


@router.delete("/admin/hero-messages/{message_id}", response_model=Message)
def delete_hero_message(
    message_id: int,
    db: Session = Depends(get_db),
    caches: HomeCaches = Depends(get_home_caches),
    admin: Identity = Depends(require_admin),
):
    home.delete_hero_message(db, caches, message_id)
    return {"message": f"Hero message {message_id} deleted"}
