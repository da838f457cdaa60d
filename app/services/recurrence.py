"""
Expansion of recurring events into calendar instances.

Pure: no database access, nothing mutated, so the same master can be expanded
for any number of windows. Occurrences listed as exceptions are left out of the
output (they still count towards ``occurrence_count``).
"""

import calendar
import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Iterable, Iterator, List, Optional, Set

logger = logging.getLogger(__name__)

PATTERN_TYPES = ("daily", "weekly", "monthly", "yearly")
END_TYPES = ("never", "on_date", "after_count")


@dataclass(frozen=True)
class RecurrencePattern:
    type: str
    interval: int = 1
    # 0 = Sunday ... 6 = Saturday
    days_of_week: tuple = ()
    day_of_month: Optional[int] = None
    end_type: str = "never"
    end_date: Optional[date] = None
    occurrence_count: Optional[int] = None

    @classmethod
    def from_json(cls, raw: str) -> "RecurrencePattern":
        data = json.loads(raw)
        if data.get("type") not in PATTERN_TYPES:
            raise ValueError(f"unknown recurrence type {data.get('type')!r}")
        if (data.get("end_type") or "never") not in END_TYPES:
            raise ValueError(f"unknown recurrence end type {data.get('end_type')!r}")
        end_date = data.get("end_date")
        return cls(
            type=data["type"],
            interval=max(int(data.get("interval") or 1), 1),
            days_of_week=tuple(sorted({int(d) for d in data.get("days_of_week") or ()})),
            day_of_month=data.get("day_of_month"),
            end_type=data.get("end_type") or "never",
            end_date=date.fromisoformat(end_date[:10]) if end_date else None,
            occurrence_count=data.get("occurrence_count"),
        )

    def to_json(self) -> str:
        return json.dumps(
            {
                "type": self.type,
                "interval": self.interval,
                "days_of_week": list(self.days_of_week),
                "day_of_month": self.day_of_month,
                "end_type": self.end_type,
                "end_date": self.end_date.isoformat() if self.end_date else None,
                "occurrence_count": self.occurrence_count,
            }
        )


@dataclass
class RecurringInstance:
    event: object
    instance_date: datetime
    is_cancelled: bool = field(default=False)


def sunday_based_weekday(day: date) -> int:
    return (day.weekday() + 1) % 7


def parse_exceptions(raw: Optional[str]) -> Set[date]:
    if not raw:
        return set()
    try:
        values = json.loads(raw)
    except ValueError:
        logger.warning(f"Ignoring malformed recurrence exceptions: {raw!r}")
        return set()
    return {date.fromisoformat(str(value)[:10]) for value in values}


def _candidate_dates(pattern: RecurrencePattern, anchor: date, until: date) -> Iterator[date]:
    """Every date the pattern produces from ``anchor`` up to ``until`` inclusive, in order."""
    if pattern.type == "daily":
        day = anchor
        while day <= until:
            yield day
            day += timedelta(days=pattern.interval)

    elif pattern.type == "weekly":
        days = set(pattern.days_of_week) or {sunday_based_weekday(anchor)}
        week_start = anchor - timedelta(days=sunday_based_weekday(anchor))
        while week_start <= until:
            for offset in range(7):
                day = week_start + timedelta(days=offset)
                if day < anchor or day > until:
                    continue
                if sunday_based_weekday(day) in days:
                    yield day
            week_start += timedelta(weeks=pattern.interval)

    elif pattern.type == "monthly":
        wanted = pattern.day_of_month or anchor.day
        year, month = anchor.year, anchor.month
        while date(year, month, 1) <= until:
            # Months without the requested day are skipped
            if wanted <= calendar.monthrange(year, month)[1]:
                day = date(year, month, wanted)
                if anchor <= day <= until:
                    yield day
            month += pattern.interval
            year += (month - 1) // 12
            month = (month - 1) % 12 + 1

    elif pattern.type == "yearly":
        year = anchor.year
        while year <= until.year:
            if anchor.month != 2 or anchor.day != 29 or calendar.isleap(year):
                day = date(year, anchor.month, anchor.day)
                if anchor <= day <= until:
                    yield day
            year += pattern.interval


def expand_event(event, start: date, end: date) -> Iterator[RecurringInstance]:
    """Instances of one recurring master falling inside ``[start, end]``."""
    if not event.is_recurring or not event.recurrence_rule:
        return
    try:
        pattern = RecurrencePattern.from_json(event.recurrence_rule)
    except (ValueError, KeyError, TypeError) as exc:
        logger.warning(f"Event {event.id} has an unreadable recurrence rule: {exc}")
        return

    anchor_dt: datetime = event.start_date
    anchor = anchor_dt.date()
    until = end
    if pattern.end_type == "on_date" and pattern.end_date:
        until = min(until, pattern.end_date)
    if event.recurrence_end is not None:
        until = min(until, event.recurrence_end.date())
    limit = pattern.occurrence_count if pattern.end_type == "after_count" else None
    exceptions = parse_exceptions(event.recurrence_exceptions)

    produced = 0
    for day in _candidate_dates(pattern, anchor, until):
        if limit is not None and produced >= limit:
            return
        produced += 1
        if day < start or day in exceptions:
            continue
        yield RecurringInstance(event=event, instance_date=datetime.combine(day, anchor_dt.time()))


def expand_recurring_events(events: Iterable, start: date, end: date) -> Iterator[RecurringInstance]:
    """Lazily expand several masters over the same window, master by master."""
    if end < start:
        return
    for event in events:
        yield from expand_event(event, start, end)


def instances_between(events: Iterable, start: date, end: date) -> List[RecurringInstance]:
    """Expanded instances sorted by date."""
    return sorted(expand_recurring_events(events, start, end), key=lambda inst: inst.instance_date)
