from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.auth import get_identity, require_author
from app.api.pagination import PageParams, page_params
from app.core.db import get_db
from app.core.identity import Identity
from app.core.tasks import TaskQueue, get_task_queue
from app.schemas.common import Message, page_envelope
from app.schemas.poll import PollCreate, PollResponse, PollUpdate, VoteRequest
from app.services.polls import PollRepository
from app.services.visibility import ViewMode

router = APIRouter()


def get_repository(db: Session = Depends(get_db), tasks: TaskQueue = Depends(get_task_queue)) -> PollRepository:
    return PollRepository(db, tasks)


def _serialize(repo: PollRepository, identity: Identity, polls) -> list:
    voted = repo.voted_poll_ids(identity.user_id, [p.id for p in polls])
    return [PollResponse.model_validate(p).model_copy(update={"has_voted": p.id in voted}) for p in polls]


@router.get("")
def list_polls(
    search: Optional[str] = None,
    active: Optional[bool] = None,
    paging: PageParams = Depends(page_params),
    repo: PollRepository = Depends(get_repository),
    identity: Identity = Depends(get_identity),
):
    items, total = repo.list(identity, paging.page, paging.page_size, search=search, active=active)
    return page_envelope("polls", _serialize(repo, identity, items), total, paging.page, paging.page_size)


@router.get("/manage")
def list_managed_polls(
    search: Optional[str] = None,
    paging: PageParams = Depends(page_params),
    repo: PollRepository = Depends(get_repository),
    identity: Identity = Depends(require_author),
):
    items, total = repo.list(identity, paging.page, paging.page_size, mode=ViewMode.MANAGE, search=search)
    return page_envelope("polls", _serialize(repo, identity, items), total, paging.page, paging.page_size)


@router.get("/{poll_id}", response_model=PollResponse)
def get_poll(poll_id: int, repo: PollRepository = Depends(get_repository), identity: Identity = Depends(get_identity)):
    """Unknown and forbidden polls both answer 404"""
    poll = repo.get(identity, item_id=poll_id)
    return _serialize(repo, identity, [poll])[0]


@router.post("", response_model=PollResponse, status_code=201)
def create_poll(payload: PollCreate, repo: PollRepository = Depends(get_repository), identity: Identity = Depends(require_author)):
    poll = repo.create(identity, payload.model_dump())
    return _serialize(repo, identity, [poll])[0]


@router.put("/{poll_id}", response_model=PollResponse)
def update_poll(
    poll_id: int,
    payload: PollUpdate,
    repo: PollRepository = Depends(get_repository),
    identity: Identity = Depends(require_author),
):
    poll = repo.update(identity, poll_id, payload.model_dump(exclude_unset=True))
    return _serialize(repo, identity, [poll])[0]


@router.delete("/{poll_id}", response_model=Message)
def delete_poll(poll_id: int, repo: PollRepository = Depends(get_repository), identity: Identity = Depends(require_author)):
    repo.delete(identity, poll_id)
    return {"message": f"Poll {poll_id} deleted"}


@router.post("/{poll_id}/vote", response_model=Message)
def vote(
    poll_id: int,
    payload: VoteRequest,
    repo: PollRepository = Depends(get_repository),
    identity: Identity = Depends(get_identity),
):
    repo.vote(identity, poll_id, payload.option_ids)
    return {"message": "Vote recorded"}


@router.post("/{poll_id}/close", response_model=PollResponse)
def close_poll(poll_id: int, repo: PollRepository = Depends(get_repository), identity: Identity = Depends(require_author)):
    poll = repo.close(identity, poll_id)
    return _serialize(repo, identity, [poll])[0]


@router.get("/{poll_id}/results")
def poll_results(poll_id: int, repo: PollRepository = Depends(get_repository), identity: Identity = Depends(get_identity)):
    return repo.results(identity, poll_id)
