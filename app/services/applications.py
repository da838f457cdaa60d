"""
App groups and the applications inside them.

Management rights come from ``can_manage_app_group``: admins manage everything,
group admins only private app groups linked to a group they administer.
Read access on the dashboard comes from the same linking table.
"""

import logging
from typing import List, Tuple

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.core.errors import AuthorizationError, NotFoundError, StoreError, ValidationError
from app.core.identity import Identity
from app.core.tasks import TaskQueue
from app.models.app_group import AppGroup, Application, ApplicationClick
from app.models.associations import group_app_groups
from app.models.group import Group
from app.services.gamification import award_xp_job
from app.services.membership import app_group_links
from app.services.visibility import can_manage_app_group

logger = logging.getLogger(__name__)


def _linked_to(group_ids):
    return AppGroup.id.in_(
        select(group_app_groups.c.app_group_id).where(group_app_groups.c.group_id.in_(sorted(group_ids)))
    )


class ApplicationService:
    def __init__(self, db: Session, tasks: TaskQueue | None = None):
        self.db = db
        self.tasks = tasks

    # reads

    def dashboard(self, identity: Identity) -> List[Tuple[AppGroup, List[Application]]]:
        """Active app groups the user can open, each with its active applications."""
        query = self.db.query(AppGroup).options(selectinload(AppGroup.applications)).filter(AppGroup.is_active.is_(True))
        if not identity.is_admin:
            reachable = identity.reachable_group_ids
            if not reachable:
                return []
            query = query.filter(_linked_to(reachable))
        groups = query.order_by(AppGroup.order, AppGroup.name).all()
        return [(group, [app for app in group.applications if app.is_active]) for group in groups]

    def manageable(self, identity: Identity) -> List[AppGroup]:
        """App groups listed in the admin interface: public ones plus private ones in scope."""
        query = self.db.query(AppGroup).options(selectinload(AppGroup.applications))
        if not identity.is_admin:
            if not identity.is_group_admin:
                raise AuthorizationError("Only admins and group admins can manage app groups", "cannot_manage_app_groups")
            managed = identity.managed_group_ids
            query = query.filter(
                or_(
                    AppGroup.is_private.is_(False),
                    AppGroup.owner_group_id.in_(sorted(managed)),
                    _linked_to(managed),
                )
            )
        return query.order_by(AppGroup.order, AppGroup.name).all()

    def get_app_group(self, app_group_id: int) -> AppGroup:
        app_group = self.db.get(AppGroup, app_group_id)
        if app_group is None:
            raise NotFoundError("App group not found", "app_group_not_found")
        return app_group

    def get_application(self, application_id: int) -> Application:
        application = self.db.get(Application, application_id)
        if application is None:
            raise NotFoundError("Application not found", "application_not_found")
        return application

    def can_manage(self, identity: Identity, app_group: AppGroup) -> bool:
        if identity.is_admin:
            return True
        return can_manage_app_group(identity, app_group.is_private, app_group_links(self.db, app_group.id))

    def ensure_can_manage(self, identity: Identity, app_group: AppGroup) -> None:
        if not self.can_manage(identity, app_group):
            raise AuthorizationError(
                "You can only manage private app groups linked to a group you administer", "cannot_manage_app_group"
            )

    def can_open(self, identity: Identity, application: Application) -> bool:
        if identity.is_admin:
            return True
        return bool(app_group_links(self.db, application.app_group_id) & identity.reachable_group_ids)

    # app groups

    def create_app_group(self, identity: Identity, payload: dict) -> AppGroup:
        data = dict(payload)
        linked: List[int] = []
        if identity.is_admin:
            if data.get("is_private") and not data.get("owner_group_id"):
                raise ValidationError("A private app group needs an owner group", "owner_group_required")
            if not data.get("is_private"):
                data["owner_group_id"] = None
            if data.get("owner_group_id"):
                if self.db.get(Group, data["owner_group_id"]) is None:
                    raise ValidationError("Unknown owner group", "unknown_groups")
                linked = [data["owner_group_id"]]
        elif identity.is_group_admin:
            # Group admins only create private app groups for the groups they run
            managed = sorted(identity.managed_group_ids)
            data["is_private"] = True
            data["owner_group_id"] = managed[0]
            linked = managed
        else:
            raise AuthorizationError("Only admins and group admins can create app groups", "cannot_manage_app_groups")

        app_group = AppGroup(**data)
        try:
            self.db.add(app_group)
            self.db.flush()
            if linked:
                self.db.execute(
                    group_app_groups.insert(),
                    [{"group_id": gid, "app_group_id": app_group.id} for gid in linked],
                )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError("Could not create app group") from exc
        self.db.refresh(app_group)
        logger.info(f"✅ App group {app_group.id} created by user {identity.user_id}")
        return app_group

    def update_app_group(self, identity: Identity, app_group_id: int, payload: dict) -> AppGroup:
        app_group = self.get_app_group(app_group_id)
        self.ensure_can_manage(identity, app_group)
        data = dict(payload)
        if not identity.is_admin:
            # Visibility and ownership stay under global admin control
            if data.pop("is_private", None) is False or data.pop("owner_group_id", None) is not None:
                raise AuthorizationError("Only admins can change app group ownership", "cannot_change_ownership")
        else:
            is_private = data.get("is_private", app_group.is_private)
            owner = data.get("owner_group_id", app_group.owner_group_id)
            if is_private and not owner:
                raise ValidationError("A private app group needs an owner group", "owner_group_required")
            if not is_private:
                data["owner_group_id"] = None
        for key, value in data.items():
            setattr(app_group, key, value)
        self.db.commit()
        self.db.refresh(app_group)
        return app_group

    def delete_app_group(self, identity: Identity, app_group_id: int) -> None:
        """Hard delete, together with its applications and group links."""
        app_group = self.get_app_group(app_group_id)
        self.ensure_can_manage(identity, app_group)
        try:
            # Link rows and applications go through the relationship cascades
            self.db.delete(app_group)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StoreError("Could not delete app group") from exc
        logger.info(f"❌ App group {app_group_id} deleted by user {identity.user_id}")

    # applications

    def create_application(self, identity: Identity, payload: dict) -> Application:
        app_group = self.get_app_group(payload["app_group_id"])
        self.ensure_can_manage(identity, app_group)
        application = Application(**payload)
        self.db.add(application)
        self.db.commit()
        self.db.refresh(application)
        return application

    def update_application(self, identity: Identity, application_id: int, payload: dict) -> Application:
        application = self.get_application(application_id)
        self.ensure_can_manage(identity, application.app_group)
        data = dict(payload)
        if data.get("app_group_id") and data["app_group_id"] != application.app_group_id:
            self.ensure_can_manage(identity, self.get_app_group(data["app_group_id"]))
        for key, value in data.items():
            setattr(application, key, value)
        self.db.commit()
        self.db.refresh(application)
        return application

    def delete_application(self, identity: Identity, application_id: int) -> None:
        application = self.get_application(application_id)
        self.ensure_can_manage(identity, application.app_group)
        self.db.delete(application)
        self.db.commit()

    def record_click(self, identity: Identity, application_id: int) -> Application:
        application = self.get_application(application_id)
        if not self.can_open(identity, application):
            raise AuthorizationError("This application is not available to your groups", "not_in_target_groups")
        self.db.add(ApplicationClick(user_id=identity.user_id, application_id=application.id))
        self.db.commit()
        if self.tasks is not None:
            self.tasks.enqueue("award_xp", award_xp_job, identity.user_id, "app_click", application.id)
        return application
