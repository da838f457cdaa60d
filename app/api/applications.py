from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from app.api.auth import get_identity, require_group_admin
from app.core.db import get_db
from app.core.identity import Identity
from app.core.tasks import TaskQueue, get_task_queue
from app.schemas.app_group import (
    AppGroupCreate, AppGroupResponse, AppGroupUpdate, ApplicationCreate, ApplicationResponse, ApplicationUpdate,
)
from app.schemas.common import Message
from app.services.applications import ApplicationService

router = APIRouter()


def get_service(db: Session = Depends(get_db), tasks: TaskQueue = Depends(get_task_queue)) -> ApplicationService:
    return ApplicationService(db, tasks)


@router.get("/dashboard", response_model=List[AppGroupResponse])
def dashboard(service: ApplicationService = Depends(get_service), identity: Identity = Depends(get_identity)):
    """App groups and their active applications for the caller's groups"""
    return [
        AppGroupResponse.model_validate(group).model_copy(
            update={"applications": [ApplicationResponse.model_validate(a) for a in apps]}
        )
        for group, apps in service.dashboard(identity)
    ]


@router.get("/app-groups", response_model=List[AppGroupResponse])
def list_app_groups(service: ApplicationService = Depends(get_service), identity: Identity = Depends(require_group_admin)):
    return service.manageable(identity)


@router.post("/app-groups", response_model=AppGroupResponse, status_code=201)
def create_app_group(
    payload: AppGroupCreate,
    service: ApplicationService = Depends(get_service),
    identity: Identity = Depends(require_group_admin),
):
    return service.create_app_group(identity, payload.model_dump())


@router.put("/app-groups/{app_group_id}", response_model=AppGroupResponse)
def update_app_group(
    app_group_id: int,
    payload: AppGroupUpdate,
    service: ApplicationService = Depends(get_service),
    identity: Identity = Depends(require_group_admin),
):
    return service.update_app_group(identity, app_group_id, payload.model_dump(exclude_unset=True))


@router.delete("/app-groups/{app_group_id}", response_model=Message)
def delete_app_group(
    app_group_id: int,
    service: ApplicationService = Depends(get_service),
    identity: Identity = Depends(require_group_admin),
):
    service.delete_app_group(identity, app_group_id)
    return {"message": f"App group {app_group_id} deleted"}


@router.post("", response_model=ApplicationResponse, status_code=201)
def create_application(
    payload: ApplicationCreate,
    service: ApplicationService = Depends(get_service),
    identity: Identity = Depends(require_group_admin),
):
    return service.create_application(identity, payload.model_dump())


@router.put("/{application_id}", response_model=ApplicationResponse)
def update_application(
    application_id: int,
    payload: ApplicationUpdate,
    service: ApplicationService = Depends(get_service),
    identity: Identity = Depends(require_group_admin),
):
    return service.update_application(identity, application_id, payload.model_dump(exclude_unset=True))


@router.delete("/{application_id}", response_model=Message)
def delete_application(
    application_id: int,
    service: ApplicationService = Depends(get_service),
    identity: Identity = Depends(require_group_admin),
):
    service.delete_application(identity, application_id)
    return {"message": f"Application {application_id} deleted"}


@router.post("/{application_id}/click", response_model=ApplicationResponse)
def record_click(
    application_id: int,
    service: ApplicationService = Depends(get_service),
    identity: Identity = Depends(get_identity),
):
    """Track an application launch"""
    return service.record_click(identity, application_id)
