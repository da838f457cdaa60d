from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.auth import get_identity, require_admin
from app.api.pagination import PageParams, page_params
from app.core.db import get_db
from app.core.identity import Identity
from app.core.tasks import TaskQueue, get_task_queue
from app.schemas.comment import CommentCreate, CommentResponse, CommentSettingsSchema, CommentUpdate, ModerationRequest
from app.schemas.common import Message, page_envelope
from app.services import comments as comment_service
from app.services.comments import CommentService, parse_target

router = APIRouter()


def get_service(db: Session = Depends(get_db), tasks: TaskQueue = Depends(get_task_queue)) -> CommentService:
    return CommentService(db, tasks)


def _page(items, total, paging: PageParams) -> dict:
    return page_envelope(
        "comments", [CommentResponse.model_validate(c) for c in items], total, paging.page, paging.page_size
    )


@router.get("")
def list_comments(
    entity_type: str,
    entity_id: int,
    paging: PageParams = Depends(page_params),
    service: CommentService = Depends(get_service),
    identity: Identity = Depends(get_identity),
):
    items, total = service.list(identity, parse_target(entity_type, entity_id), paging.page, paging.page_size)
    return _page(items, total, paging)


@router.get("/pending")
def pending_comments(
    paging: PageParams = Depends(page_params),
    service: CommentService = Depends(get_service),
    identity: Identity = Depends(get_identity),
):
    """Moderation queue: unapproved or flagged comments"""
    items, total = service.pending(identity, paging.page, paging.page_size)
    return _page(items, total, paging)


@router.get("/settings", response_model=CommentSettingsSchema)
def get_settings(db: Session = Depends(get_db), identity: Identity = Depends(get_identity)):
    return comment_service.get_settings(db)


@router.put("/settings", response_model=CommentSettingsSchema)
def update_settings(payload: CommentSettingsSchema, db: Session = Depends(get_db), admin: Identity = Depends(require_admin)):
    return comment_service.update_settings(db, payload.model_dump())


@router.post("", response_model=CommentResponse, status_code=201)
def create_comment(payload: CommentCreate, service: CommentService = Depends(get_service), identity: Identity = Depends(get_identity)):
    return service.create(identity, parse_target(payload.entity_type, payload.entity_id), payload.content)


@router.put("/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: int,
    payload: CommentUpdate,
    service: CommentService = Depends(get_service),
    identity: Identity = Depends(get_identity),
):
    return service.update(identity, comment_id, payload.content)


@router.delete("/{comment_id}", response_model=Message)
def delete_comment(comment_id: int, service: CommentService = Depends(get_service), identity: Identity = Depends(get_identity)):
    service.delete(identity, comment_id)
    return {"message": f"Comment {comment_id} deleted"}


@router.post("/{comment_id}/moderate", response_model=CommentResponse)
def moderate_comment(
    comment_id: int,
    payload: ModerationRequest,
    service: CommentService = Depends(get_service),
    identity: Identity = Depends(get_identity),
):
    return service.moderate(identity, comment_id, payload.is_approved, payload.is_flagged)
