"""
Home page content.

Announcements, app settings and hero messages change rarely and are read on
every page load, so each sits in its own TTL cache slot. The admin handlers
below invalidate their slot after writing.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List

from sqlalchemy.orm import Session

from app.core.cache import TTLCache
from app.core.config import ANNOUNCEMENTS_CACHE_TTL, APP_SETTINGS_CACHE_TTL, HERO_MESSAGES_CACHE_TTL
from app.core.errors import NotFoundError
from app.core.identity import Identity
from app.models.site import Announcement, AppSetting, HeroMessage
from app.services.events import EventRepository
from app.services.news import NewsRepository
from app.services.polls import PollRepository

logger = logging.getLogger(__name__)

HOME_NEWS_LIMIT = 5
HOME_EVENTS_LIMIT = 5
HOME_POLLS_LIMIT = 3


@dataclass
class HomeCaches:
    announcements: TTLCache = field(default_factory=lambda: TTLCache("announcements", ANNOUNCEMENTS_CACHE_TTL))
    settings: TTLCache = field(default_factory=lambda: TTLCache("app_settings", APP_SETTINGS_CACHE_TTL))
    hero_messages: TTLCache = field(default_factory=lambda: TTLCache("hero_messages", HERO_MESSAGES_CACHE_TTL))


_caches = HomeCaches()


def get_home_caches() -> HomeCaches:
    return _caches


def _announcement_dict(a: Announcement) -> dict:
    return {"id": a.id, "title": a.title, "message": a.message, "level": a.level, "is_active": a.is_active, "order": a.order}


def _hero_dict(h: HeroMessage) -> dict:
    return {"id": h.id, "text": h.text, "is_active": h.is_active, "order": h.order}


# cached reads

def active_announcements(db: Session, caches: HomeCaches) -> List[dict]:
    def load():
        rows = (
            db.query(Announcement)
            .filter(Announcement.is_active.is_(True))
            .order_by(Announcement.order, Announcement.id)
            .all()
        )
        return [_announcement_dict(a) for a in rows]

    return caches.announcements.get_or_load(load)


def app_settings(db: Session, caches: HomeCaches) -> Dict[str, str]:
    return caches.settings.get_or_load(lambda: {s.key: s.value for s in db.query(AppSetting).all()})


def active_hero_messages(db: Session, caches: HomeCaches) -> List[dict]:
    def load():
        rows = (
            db.query(HeroMessage)
            .filter(HeroMessage.is_active.is_(True))
            .order_by(HeroMessage.order, HeroMessage.id)
            .all()
        )
        return [_hero_dict(h) for h in rows]

    return caches.hero_messages.get_or_load(load)


def home_feed(db: Session, identity: Identity, caches: HomeCaches) -> dict:
    """Everything the home page shows, filtered for ``identity``."""
    news, _ = NewsRepository(db).list(identity, page=1, page_size=HOME_NEWS_LIMIT)
    events, _ = EventRepository(db).list(identity, page=1, page_size=HOME_EVENTS_LIMIT, upcoming=True)
    polls, _ = PollRepository(db).list(identity, page=1, page_size=HOME_POLLS_LIMIT, active=True)
    return {
        "announcements": active_announcements(db, caches),
        "settings": app_settings(db, caches),
        "hero_messages": active_hero_messages(db, caches),
        "news": news,
        "events": events,
        "polls": polls,
    }


# admin writes

def list_announcements(db: Session) -> List[dict]:
    return [_announcement_dict(a) for a in db.query(Announcement).order_by(Announcement.order, Announcement.id)]


def save_announcement(db: Session, caches: HomeCaches, data: dict, announcement_id: int | None = None) -> dict:
    if announcement_id is None:
        announcement = Announcement()
        db.add(announcement)
    else:
        announcement = db.get(Announcement, announcement_id)
        if announcement is None:
            raise NotFoundError("Announcement not found", "announcement_not_found")
    for key, value in data.items():
        setattr(announcement, key, value)
    db.commit()
    db.refresh(announcement)
    caches.announcements.invalidate()
    return _announcement_dict(announcement)


def delete_announcement(db: Session, caches: HomeCaches, announcement_id: int) -> None:
    announcement = db.get(Announcement, announcement_id)
    if announcement is None:
        raise NotFoundError("Announcement not found", "announcement_not_found")
    db.delete(announcement)
    db.commit()
    caches.announcements.invalidate()


def update_settings(db: Session, caches: HomeCaches, values: Dict[str, str]) -> Dict[str, str]:
    for key, value in values.items():
        setting = db.get(AppSetting, key)
        if setting is None:
            db.add(AppSetting(key=key, value=value))
        else:
            setting.value = value
    db.commit()
    caches.settings.invalidate()
    logger.info(f"App settings updated: {sorted(values)}")
    return app_settings(db, caches)


def list_hero_messages(db: Session) -> List[dict]:
    return [_hero_dict(h) for h in db.query(HeroMessage).order_by(HeroMessage.order, HeroMessage.id)]


def save_hero_message(db: Session, caches: HomeCaches, data: dict, message_id: int | None = None) -> dict:
    if message_id is None:
        message = HeroMessage()
        db.add(message)
    else:
        message = db.get(HeroMessage, message_id)
        if message is None:
            raise NotFoundError("Hero message not found", "hero_message_not_found")
    for key, value in data.items():
        setattr(message, key, value)
    db.commit()
    db.refresh(message)
    caches.hero_messages.invalidate()
    return _hero_dict(message)


def delete_hero_message(db: Session, caches: HomeCaches, message_id: int) -> None:
    message = db.get(HeroMessage, message_id)
    if message is None:
        raise NotFoundError("Hero message not found", "hero_message_not_found")
    db.delete(message)
    db.commit()
    caches.hero_messages.invalidate()
