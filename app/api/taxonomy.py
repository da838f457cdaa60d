from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.auth import get_identity, require_admin, require_author
from app.core.db import get_db
from app.core.identity import Identity
from app.models.taxonomy import EventCategory, NewsCategory, Tag
from app.schemas.common import Message, TagRef
from app.schemas.taxonomy import CategoryCreate, CategoryResponse, TagCreate
from app.services import taxonomy

router = APIRouter()


@router.get("/tags", response_model=List[TagRef])
def list_tags(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return taxonomy.list_terms(db, Tag)


@router.post("/tags", response_model=TagRef, status_code=201)
def create_tag(payload: TagCreate, db: Session = Depends(get_db), identity: Identity = Depends(require_author)):
    return taxonomy.create_term(db, Tag, payload.model_dump())


@router.get("/news-categories", response_model=List[CategoryResponse])
def list_news_categories(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return taxonomy.list_terms(db, NewsCategory)


@router.post("/news-categories", response_model=CategoryResponse, status_code=201)
def create_news_category(payload: CategoryCreate, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return taxonomy.create_term(db, NewsCategory, payload.model_dump())


@router.get("/event-categories", response_model=List[CategoryResponse])
def list_event_categories(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return taxonomy.list_terms(db, EventCategory)


@router.post("/event-categories", response_model=CategoryResponse, status_code=201)
def create_event_category(payload: CategoryCreate, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return taxonomy.create_term(db, EventCategory, payload.model_dump())


@router.delete("/{kind}/{term_id}", response_model=Message)
def delete_term(kind: str, term_id: int, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    """Soft delete a tag or category; kind is tags, news-categories or event-categories"""
    taxonomy.delete_term(db, taxonomy.model_for(kind), term_id)
    return {"message": f"Deleted {term_id}"}
