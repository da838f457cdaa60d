from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models.taxonomy import EventCategory, NewsCategory, Tag

TAXONOMY_MODELS = {"tags": Tag, "news-categories": NewsCategory, "event-categories": EventCategory}


def model_for(kind: str):
    model = TAXONOMY_MODELS.get(kind)
    if model is None:
        raise NotFoundError(f"Unknown taxonomy {kind}", "not_found")
    return model


def list_terms(db: Session, model) -> List:
    return db.query(model).filter(model.deleted_at.is_(None)).order_by(model.name).all()


def create_term(db: Session, model, data: dict):
    # The slug is filled in by the before_insert listener
    term = model(**data)
    db.add(term)
    db.commit()
    db.refresh(term)
    return term


def delete_term(db: Session, model, term_id: int) -> None:
    """Soft delete, which frees the slug for reuse."""
    term = db.get(model, term_id)
    if term is None or term.deleted_at is not None:
        raise NotFoundError("Not found", "not_found")
    term.deleted_at = datetime.utcnow()
    db.commit()
