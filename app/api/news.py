from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.auth import get_identity, require_author
from app.api.pagination import PageParams, page_params
from app.core.db import get_db
from app.core.identity import Identity
from app.core.tasks import TaskQueue, get_task_queue
from app.schemas.common import Message, page_envelope
from app.schemas.news import NewsCreate, NewsResponse, NewsUpdate, ReactionRequest, ReactionSummary
from app.services.news import NewsRepository
from app.services.visibility import ViewMode

router = APIRouter()


def get_repository(db: Session = Depends(get_db), tasks: TaskQueue = Depends(get_task_queue)) -> NewsRepository:
    return NewsRepository(db, tasks)


def _page(items, total, paging: PageParams) -> dict:
    return page_envelope("news", [NewsResponse.model_validate(n) for n in items], total, paging.page, paging.page_size)


@router.get("")
def list_news(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    category: Optional[str] = None,
    tag_id: Optional[int] = None,
    is_pinned: Optional[bool] = None,
    paging: PageParams = Depends(page_params),
    repo: NewsRepository = Depends(get_repository),
    identity: Identity = Depends(get_identity),
):
    """Published news the caller may read, pinned first"""
    items, total = repo.list(
        identity,
        paging.page,
        paging.page_size,
        search=search,
        category_id=category_id,
        category=category,
        tag_id=tag_id,
        is_pinned=is_pinned,
    )
    return _page(items, total, paging)


@router.get("/manage")
def list_managed_news(
    search: Optional[str] = None,
    paging: PageParams = Depends(page_params),
    repo: NewsRepository = Depends(get_repository),
    identity: Identity = Depends(require_author),
):
    """Admin interface list: own articles plus those targeted at managed groups, drafts included"""
    items, total = repo.list(identity, paging.page, paging.page_size, mode=ViewMode.MANAGE, search=search)
    return _page(items, total, paging)


@router.get("/slug/{slug}", response_model=NewsResponse)
def get_news_by_slug(slug: str, repo: NewsRepository = Depends(get_repository), identity: Identity = Depends(get_identity)):
    item = repo.get(identity, slug=slug)
    repo.register_view(identity, item)
    return item


@router.get("/{news_id}", response_model=NewsResponse)
def get_news(news_id: int, repo: NewsRepository = Depends(get_repository), identity: Identity = Depends(get_identity)):
    item = repo.get(identity, item_id=news_id)
    repo.register_view(identity, item)
    return item


@router.post("", response_model=NewsResponse, status_code=201)
def create_news(payload: NewsCreate, repo: NewsRepository = Depends(get_repository), identity: Identity = Depends(require_author)):
    return repo.create(identity, payload.model_dump())


@router.put("/{news_id}", response_model=NewsResponse)
def update_news(
    news_id: int,
    payload: NewsUpdate,
    repo: NewsRepository = Depends(get_repository),
    identity: Identity = Depends(require_author),
):
    return repo.update(identity, news_id, payload.model_dump(exclude_unset=True))


@router.delete("/{news_id}", response_model=Message)
def delete_news(news_id: int, repo: NewsRepository = Depends(get_repository), identity: Identity = Depends(require_author)):
    repo.delete(identity, news_id)
    return {"message": f"News {news_id} deleted"}


@router.post("/{news_id}/pin", response_model=NewsResponse)
def toggle_pin(news_id: int, repo: NewsRepository = Depends(get_repository), identity: Identity = Depends(require_author)):
    return repo.toggle_pin(identity, news_id)


@router.get("/{news_id}/reactions", response_model=ReactionSummary)
def get_reactions(news_id: int, repo: NewsRepository = Depends(get_repository), identity: Identity = Depends(get_identity)):
    item = repo.get(identity, item_id=news_id)
    return repo.reactions(identity, item.id)


@router.post("/{news_id}/reactions", response_model=ReactionSummary)
def react(
    news_id: int,
    payload: ReactionRequest,
    repo: NewsRepository = Depends(get_repository),
    identity: Identity = Depends(get_identity),
):
    return repo.react(identity, news_id, payload.reaction_type)


@router.delete("/{news_id}/reactions", response_model=ReactionSummary)
def unreact(news_id: int, repo: NewsRepository = Depends(get_repository), identity: Identity = Depends(get_identity)):
    return repo.unreact(identity, news_id)
