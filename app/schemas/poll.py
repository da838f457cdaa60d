from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from app.schemas.common import GroupRef, UserRef


class PollCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    options: List[str]
    allow_multiple: bool = False
    is_anonymous: bool = False
    show_results: str = Field(default="after_vote", pattern="^(always|after_vote|after_close)$")
    is_active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    target_group_ids: List[int] = []


class PollUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    options: Optional[List[str]] = None
    allow_multiple: Optional[bool] = None
    is_anonymous: Optional[bool] = None
    show_results: Optional[str] = Field(default=None, pattern="^(always|after_vote|after_close)$")
    is_active: Optional[bool] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    target_group_ids: Optional[List[int]] = None


class VoteRequest(BaseModel):
    option_ids: List[int] = Field(min_length=1)


class PollOptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    text: str
    order: int


class PollResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    author: Optional[UserRef] = None
    allow_multiple: bool
    is_anonymous: bool
    show_results: str
    is_active: bool
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    options: List[PollOptionResponse] = []
    target_groups: List[GroupRef] = []
    created_at: Optional[datetime] = None
    has_voted: bool = False
