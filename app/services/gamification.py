import logging
import math
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.db import SessionLocal
from app.core.errors import StoreError
from app.models.app_group import ApplicationClick
from app.models.associations import group_admins
from app.models.comment import Comment
from app.models.event import Event
from app.models.gamification import Achievement, GamificationProfile, UserAchievement, XPTransaction
from app.models.news import News, NewsRead
from app.models.poll import Poll, PollVote
from app.models.user import User

logger = logging.getLogger(__name__)

XP_REWARDS: Dict[str, int] = {
    "app_click": 2,
    "news_read": 5,
    "daily_login": 5,
    "comment_create": 10,
    "poll_vote": 10,
    "poll_create": 15,
    "event_publish": 15,
    "news_publish": 20,
}

# Actions credited at most once per (user, reference)
ONCE_PER_REFERENCE = {"daily_login", "news_read", "poll_vote"}

DEFAULT_ACHIEVEMENTS = [
    {"code": "early_bird", "name": "Early bird", "description": "Sign in before 8:30 am", "xp_reward": 50, "category": "general"},
    {"code": "explorer", "name": "Explorer", "description": "Open 10 different applications", "xp_reward": 100, "category": "general"},
    {"code": "informed", "name": "Well informed", "description": "Read 20 news articles", "xp_reward": 150, "category": "general"},
    {"code": "first_news", "name": "First story", "description": "Publish your first article", "xp_reward": 200, "category": "contributor"},
    {"code": "event_master", "name": "Event master", "description": "Create 5 events", "xp_reward": 300, "category": "contributor"},
    {"code": "citizen", "name": "Citizen", "description": "Vote in 5 polls", "xp_reward": 100, "category": "general"},
    {"code": "pollster", "name": "Pollster", "description": "Create 3 polls", "xp_reward": 150, "category": "contributor"},
    {"code": "commentator", "name": "Commentator", "description": "Post 5 comments", "xp_reward": 80, "category": "general"},
]


def level_for_xp(xp: int) -> int:
    return int(math.floor(math.sqrt(max(xp, 0) / 100))) + 1


def seed_achievements(db: Session) -> None:
    existing = {code for (code,) in db.execute(select(Achievement.code))}
    for data in DEFAULT_ACHIEVEMENTS:
        if data["code"] not in existing:
            db.add(Achievement(**data))
    db.commit()


def _count(db: Session, stmt) -> int:
    return db.execute(stmt).scalar() or 0


# action -> (achievement code, predicate over (db, user_id, now))
ACHIEVEMENT_CHECKS: Dict[str, tuple] = {
    "app_click": ("explorer", lambda db, uid, now: _count(
        db, select(func.count(func.distinct(ApplicationClick.application_id))).where(ApplicationClick.user_id == uid)
    ) >= 10),
    "news_read": ("informed", lambda db, uid, now: _count(
        db, select(func.count(NewsRead.id)).where(NewsRead.user_id == uid)
    ) >= 20),
    "daily_login": ("early_bird", lambda db, uid, now: now.hour < 8 or (now.hour == 8 and now.minute < 30)),
    "news_publish": ("first_news", lambda db, uid, now: _count(
        db, select(func.count(News.id)).where(News.author_id == uid)
    ) >= 1),
    "event_publish": ("event_master", lambda db, uid, now: _count(
        db, select(func.count(Event.id)).where(Event.author_id == uid)
    ) >= 5),
    "poll_vote": ("citizen", lambda db, uid, now: _count(
        db, select(func.count(func.distinct(PollVote.poll_id))).where(PollVote.user_id == uid)
    ) >= 5),
    "poll_create": ("pollster", lambda db, uid, now: _count(
        db, select(func.count(Poll.id)).where(Poll.author_id == uid)
    ) >= 3),
    "comment_create": ("commentator", lambda db, uid, now: _count(
        db, select(func.count(Comment.id)).where(Comment.user_id == uid)
    ) >= 5),
}


def _is_contributor(db: Session, user_id: int) -> bool:
    user = db.get(User, user_id)
    if user is None:
        return False
    if user.role in ("admin", "editor"):
        return True
    return _count(db, select(func.count()).select_from(group_admins).where(group_admins.c.user_id == user_id)) > 0


def _get_profile(db: Session, user_id: int) -> GamificationProfile:
    profile = (
        db.query(GamificationProfile)
        .filter(GamificationProfile.user_id == user_id)
        .with_for_update()
        .first()
    )
    if profile is None:
        profile = GamificationProfile(user_id=user_id, total_xp=0, level=1)
        db.add(profile)
        db.flush()
    return profile


def _already_credited(db: Session, user_id: int, action: str, reference_id: int) -> bool:
    return (
        db.query(XPTransaction.id)
        .filter(
            XPTransaction.user_id == user_id,
            XPTransaction.action == action,
            XPTransaction.reference_id == reference_id,
        )
        .first()
        is not None
    )


def _unlock(db: Session, profile: GamificationProfile, code: str) -> Optional[Achievement]:
    achievement = db.query(Achievement).filter(Achievement.code == code).first()
    if achievement is None:
        return None
    already = (
        db.query(UserAchievement)
        .filter(UserAchievement.user_id == profile.user_id, UserAchievement.achievement_id == achievement.id)
        .first()
    )
    if already is not None:
        return None
    if achievement.category == "contributor" and not _is_contributor(db, profile.user_id):
        return None

    db.add(UserAchievement(user_id=profile.user_id, achievement_id=achievement.id))
    if achievement.xp_reward:
        # Reward goes straight onto the profile, no second achievement round
        profile.total_xp += achievement.xp_reward
        db.add(XPTransaction(user_id=profile.user_id, amount=achievement.xp_reward, action=f"achievement:{code}"))
    logger.info(f"🏆 User {profile.user_id} unlocked {code}")
    return achievement


def award_xp(
    db: Session,
    user_id: int,
    action: str,
    amount: int | None = None,
    reference_id: int | None = None,
    now: datetime | None = None,
) -> GamificationProfile:
    """Credit XP, recompute the level and unlock achievements, in one transaction."""
    amount = XP_REWARDS.get(action, 0) if amount is None else amount
    now = now or datetime.now()
    try:
        profile = _get_profile(db, user_id)
        if reference_id is not None and action in ONCE_PER_REFERENCE and _already_credited(db, user_id, action, reference_id):
            db.commit()
            return profile
        db.add(XPTransaction(user_id=user_id, amount=amount, action=action, reference_id=reference_id))
        profile.total_xp += amount
        db.flush()

        check = ACHIEVEMENT_CHECKS.get(action)
        if check is not None:
            code, predicate = check
            if predicate(db, user_id, now):
                _unlock(db, profile, code)

        profile.level = level_for_xp(profile.total_xp)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        raise StoreError("Could not award XP") from exc
    db.refresh(profile)
    return profile


def award_xp_job(user_id: int, action: str, reference_id: int | None = None, session_factory=SessionLocal) -> None:
    """Background variant of ``award_xp`` with its own session."""
    with session_factory() as db:
        award_xp(db, user_id, action, reference_id=reference_id)


def profile_summary(db: Session, user_id: int) -> dict:
    profile = db.query(GamificationProfile).filter(GamificationProfile.user_id == user_id).first()
    xp = profile.total_xp if profile else 0
    level = level_for_xp(xp)
    return {
        "user_id": user_id,
        "total_xp": xp,
        "level": level,
        "next_level_xp": (level ** 2) * 100,
    }


def user_achievements(db: Session, user_id: int) -> List[dict]:
    unlocked = {
        row.achievement_id: row.unlocked_at
        for row in db.query(UserAchievement).filter(UserAchievement.user_id == user_id)
    }
    return [
        {
            "code": a.code,
            "name": a.name,
            "description": a.description,
            "xp_reward": a.xp_reward,
            "unlocked": a.id in unlocked,
            "unlocked_at": unlocked.get(a.id),
        }
        for a in db.query(Achievement).order_by(Achievement.id)
    ]


def leaderboard(db: Session, limit: int = 10) -> List[dict]:
    rows = (
        db.query(GamificationProfile, User)
        .join(User, User.id == GamificationProfile.user_id)
        .filter(User.deleted_at.is_(None), User.is_active.is_(True))
        .order_by(GamificationProfile.total_xp.desc(), GamificationProfile.user_id)
        .limit(limit)
        .all()
    )
    return [
        {"rank": i + 1, "user_id": user.id, "username": user.username, "total_xp": profile.total_xp, "level": profile.level}
        for i, (profile, user) in enumerate(rows)
    ]
