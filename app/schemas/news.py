from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from app.schemas.common import GroupRef, TagRef, UserRef


class NewsCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, max_length=100)
    summary: Optional[str] = Field(default=None, max_length=500)
    content: str = ""
    image_url: Optional[str] = None
    category_id: Optional[int] = None
    is_published: bool = False
    published_at: Optional[datetime] = None
    is_pinned: bool = False
    tag_ids: List[int] = []
    target_group_ids: List[int] = []


class NewsUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    summary: Optional[str] = Field(default=None, max_length=500)
    content: Optional[str] = None
    image_url: Optional[str] = None
    category_id: Optional[int] = None
    is_published: Optional[bool] = None
    published_at: Optional[datetime] = None
    is_pinned: Optional[bool] = None
    tag_ids: Optional[List[int]] = None
    target_group_ids: Optional[List[int]] = None


class CategoryRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    color: Optional[str] = None


class NewsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    slug: str
    summary: Optional[str] = None
    content: str
    image_url: Optional[str] = None
    category: Optional[CategoryRef] = None
    author: Optional[UserRef] = None
    is_published: bool
    published_at: Optional[datetime] = None
    is_pinned: bool
    views_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    tags: List[TagRef] = []
    target_groups: List[GroupRef] = []


class ReactionRequest(BaseModel):
    reaction_type: str = Field(pattern="^(like|love|laugh|wow|sad|angry)$")


class ReactionSummary(BaseModel):
    counts: dict
    total: int
    user_reaction: Optional[str] = None
