from datetime import date, datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from app.schemas.common import GroupRef, TagRef, UserRef
from app.schemas.news import CategoryRef


class RecurrencePatternIn(BaseModel):
    type: str = Field(pattern="^(daily|weekly|monthly|yearly)$")
    interval: int = Field(default=1, ge=1, le=365)
    days_of_week: List[int] = []
    day_of_month: Optional[int] = Field(default=None, ge=1, le=31)
    end_type: str = Field(default="never", pattern="^(never|on_date|after_count)$")
    end_date: Optional[date] = None
    occurrence_count: Optional[int] = Field(default=None, ge=1)


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    start_date: datetime
    end_date: Optional[datetime] = None
    all_day: bool = False
    status: str = Field(default="confirmed", pattern="^(draft|confirmed|cancelled|postponed)$")
    priority: str = Field(default="normal", pattern="^(low|normal|high|urgent)$")
    category_id: Optional[int] = None
    is_published: bool = True
    recurrence: Optional[RecurrencePatternIn] = None
    recurrence_exceptions: List[date] = []
    tag_ids: List[int] = []
    target_group_ids: List[int] = []


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    location: Optional[str] = Field(default=None, max_length=255)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    all_day: Optional[bool] = None
    status: Optional[str] = Field(default=None, pattern="^(draft|confirmed|cancelled|postponed)$")
    priority: Optional[str] = Field(default=None, pattern="^(low|normal|high|urgent)$")
    category_id: Optional[int] = None
    is_published: Optional[bool] = None
    recurrence: Optional[RecurrencePatternIn] = None
    recurrence_exceptions: Optional[List[date]] = None
    tag_ids: Optional[List[int]] = None
    target_group_ids: Optional[List[int]] = None


class EventResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    description: Optional[str] = None
    location: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    all_day: bool
    status: str
    priority: str
    category: Optional[CategoryRef] = None
    author: Optional[UserRef] = None
    is_published: bool
    is_recurring: bool
    recurrence_rule: Optional[str] = None
    recurrence_exceptions: Optional[str] = None
    tags: List[TagRef] = []
    target_groups: List[GroupRef] = []
    created_at: Optional[datetime] = None


class EventInstanceResponse(BaseModel):
    event: EventResponse
    instance_date: datetime
    is_cancelled: bool = False
