import json
from datetime import date, datetime, time
from typing import List, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Query

from app.core.errors import ValidationError
from app.core.identity import Identity
from app.models.associations import event_tags, event_target_groups
from app.models.event import Event
from app.models.taxonomy import EventCategory
from app.services.content import ContentRepository
from app.services.recurrence import RecurrencePattern, RecurringInstance, instances_between
from app.services.visibility import TargetBinding, ViewMode

MAX_CALENDAR_DAYS = 366


class EventRepository(ContentRepository):
    model = Event
    binding = TargetBinding(
        model=Event,
        link_table=event_target_groups,
        link_column=event_target_groups.c.event_id,
        published_column=Event.is_published,
    )
    entity = "event"
    content_type = "event"
    search_columns = (Event.title, Event.description, Event.location)
    publish_action = "event_publish"
    has_tags = True

    def apply_filters(self, query: Query, filters: dict) -> Query:
        if "category_id" in filters:
            query = query.filter(Event.category_id == filters["category_id"])
        if "tag_id" in filters:
            query = query.filter(Event.id.in_(select(event_tags.c.event_id).where(event_tags.c.tag_id == filters["tag_id"])))
        if "status" in filters:
            query = query.filter(Event.status == filters["status"])
        if "priority" in filters:
            query = query.filter(Event.priority == filters["priority"])
        if "start_date" in filters:
            start = datetime.combine(filters["start_date"], time.min)
            query = query.filter(or_(Event.end_date >= start, and_(Event.end_date.is_(None), Event.start_date >= start)))
        if "end_date" in filters:
            query = query.filter(Event.start_date <= datetime.combine(filters["end_date"], time.max))
        if filters.get("upcoming") is True:
            query = query.filter(Event.start_date >= datetime.utcnow())
        elif filters.get("upcoming") is False:
            query = query.filter(Event.start_date < datetime.utcnow())
        return query

    def order(self, query: Query) -> Query:
        return query.order_by(Event.start_date.asc(), Event.id.asc())

    def apply_fields(self, item: Event, data: dict, creating: bool) -> None:
        if data.get("category_id") is not None:
            category = self.db.get(EventCategory, data["category_id"])
            if category is None or category.deleted_at is not None:
                raise ValidationError("Unknown event category", "unknown_category")
        if creating and not data.get("slug"):
            data.pop("slug", None)

        if "recurrence" in data:
            pattern = data.pop("recurrence")
            if pattern:
                self._apply_recurrence(item, pattern)
            else:
                item.is_recurring = False
                item.recurrence_rule = None
                item.recurrence_end = None
        if "recurrence_exceptions" in data:
            exceptions = data.pop("recurrence_exceptions") or []
            item.recurrence_exceptions = json.dumps(sorted(d.isoformat() for d in exceptions)) if exceptions else None

        super().apply_fields(item, data, creating)
        if item.end_date is not None and item.start_date is not None and item.end_date < item.start_date:
            raise ValidationError("End date must not be before start date", "invalid_dates")

    def _apply_recurrence(self, item: Event, pattern: dict) -> None:
        if pattern["type"] == "weekly" and any(d < 0 or d > 6 for d in pattern.get("days_of_week") or ()):
            raise ValidationError("days_of_week must be between 0 (Sunday) and 6 (Saturday)", "invalid_recurrence")
        if pattern.get("end_type") == "on_date" and not pattern.get("end_date"):
            raise ValidationError("end_date is required when end_type is on_date", "invalid_recurrence")
        if pattern.get("end_type") == "after_count" and not pattern.get("occurrence_count"):
            raise ValidationError("occurrence_count is required when end_type is after_count", "invalid_recurrence")
        rule = RecurrencePattern(
            type=pattern["type"],
            interval=pattern.get("interval") or 1,
            days_of_week=tuple(sorted(set(pattern.get("days_of_week") or ()))),
            day_of_month=pattern.get("day_of_month"),
            end_type=pattern.get("end_type") or "never",
            end_date=pattern.get("end_date"),
            occurrence_count=pattern.get("occurrence_count"),
        )
        item.is_recurring = True
        item.recurrence_rule = rule.to_json()
        item.recurrence_end = datetime.combine(rule.end_date, time.max) if rule.end_type == "on_date" else None

    def calendar(self, identity: Identity, start: date, end: date) -> Tuple[List[Event], List[RecurringInstance]]:
        """One-off events overlapping the window plus expanded recurring instances."""
        if end < start:
            raise ValidationError("end_date must not be before start_date", "invalid_dates")
        if (end - start).days > MAX_CALENDAR_DAYS:
            raise ValidationError(f"Calendar window is limited to {MAX_CALENDAR_DAYS} days", "invalid_dates")

        window_start = datetime.combine(start, time.min)
        window_end = datetime.combine(end, time.max)
        visible = self.visible_query(identity, ViewMode.PUBLIC)

        one_off = (
            visible.filter(
                Event.is_recurring.is_(False),
                Event.start_date <= window_end,
                or_(Event.end_date >= window_start, and_(Event.end_date.is_(None), Event.start_date >= window_start)),
            )
            .order_by(Event.start_date)
            .all()
        )
        masters = (
            visible.filter(
                Event.is_recurring.is_(True),
                Event.start_date <= window_end,
                or_(Event.recurrence_end.is_(None), Event.recurrence_end >= window_start),
            )
            .order_by(Event.start_date)
            .all()
        )
        return one_off, instances_between(masters, start, end)
