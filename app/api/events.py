from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.api.auth import get_identity, require_author
from app.api.pagination import PageParams, page_params
from app.core.db import get_db
from app.core.identity import Identity
from app.core.tasks import TaskQueue, get_task_queue
from app.schemas.common import Message, page_envelope
from app.schemas.event import EventCreate, EventInstanceResponse, EventResponse, EventUpdate
from app.services.events import EventRepository
from app.services.visibility import ViewMode

router = APIRouter()


def get_repository(db: Session = Depends(get_db), tasks: TaskQueue = Depends(get_task_queue)) -> EventRepository:
    return EventRepository(db, tasks)


def _page(items, total, paging: PageParams) -> dict:
    return page_envelope("events", [EventResponse.model_validate(e) for e in items], total, paging.page, paging.page_size)


@router.get("")
def list_events(
    search: Optional[str] = None,
    category_id: Optional[int] = None,
    tag_id: Optional[int] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    upcoming: Optional[bool] = None,
    paging: PageParams = Depends(page_params),
    repo: EventRepository = Depends(get_repository),
    identity: Identity = Depends(get_identity),
):
    items, total = repo.list(
        identity,
        paging.page,
        paging.page_size,
        search=search,
        category_id=category_id,
        tag_id=tag_id,
        status=status,
        priority=priority,
        start_date=start_date,
        end_date=end_date,
        upcoming=upcoming,
    )
    return _page(items, total, paging)


@router.get("/manage")
def list_managed_events(
    search: Optional[str] = None,
    paging: PageParams = Depends(page_params),
    repo: EventRepository = Depends(get_repository),
    identity: Identity = Depends(require_author),
):
    items, total = repo.list(identity, paging.page, paging.page_size, mode=ViewMode.MANAGE, search=search)
    return _page(items, total, paging)


@router.get("/calendar")
def calendar(
    start_date: date = Query(...),
    end_date: date = Query(...),
    repo: EventRepository = Depends(get_repository),
    identity: Identity = Depends(get_identity),
):
    """One-off events in the window plus the expanded instances of recurring ones"""
    one_off, instances = repo.calendar(identity, start_date, end_date)
    return {
        "events": [EventResponse.model_validate(e) for e in one_off],
        "instances": [
            EventInstanceResponse(
                event=EventResponse.model_validate(i.event),
                instance_date=i.instance_date,
                is_cancelled=i.is_cancelled,
            )
            for i in instances
        ],
        "start_date": start_date,
        "end_date": end_date,
    }


@router.get("/slug/{slug}", response_model=EventResponse)
def get_event_by_slug(slug: str, repo: EventRepository = Depends(get_repository), identity: Identity = Depends(get_identity)):
    return repo.get(identity, slug=slug)


@router.get("/{event_id}", response_model=EventResponse)
def get_event(event_id: int, repo: EventRepository = Depends(get_repository), identity: Identity = Depends(get_identity)):
    return repo.get(identity, item_id=event_id)


@router.post("", response_model=EventResponse, status_code=201)
def create_event(payload: EventCreate, repo: EventRepository = Depends(get_repository), identity: Identity = Depends(require_author)):
    return repo.create(identity, payload.model_dump())


@router.put("/{event_id}", response_model=EventResponse)
def update_event(
    event_id: int,
    payload: EventUpdate,
    repo: EventRepository = Depends(get_repository),
    identity: Identity = Depends(require_author),
):
    return repo.update(identity, event_id, payload.model_dump(exclude_unset=True))


@router.delete("/{event_id}", response_model=Message)
def delete_event(event_id: int, repo: EventRepository = Depends(get_repository), identity: Identity = Depends(require_author)):
    repo.delete(identity, event_id)
    return {"message": f"Event {event_id} deleted"}
