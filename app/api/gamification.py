from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.api.auth import get_identity
from app.core.db import get_db
from app.core.identity import Identity
from app.services import gamification

router = APIRouter()


@router.get("/me")
def my_profile(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    """XP, level and the XP needed for the next level"""
    return gamification.profile_summary(db, identity.user_id)


@router.get("/me/achievements")
def my_achievements(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return {"achievements": gamification.user_achievements(db, identity.user_id)}


@router.get("/leaderboard")
def leaderboard(
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
):
    return {"leaderboard": gamification.leaderboard(db, limit)}
