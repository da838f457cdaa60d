from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from app.schemas.common import UserRef


class CommentCreate(BaseModel):
    entity_type: str
    entity_id: int
    content: str = Field(min_length=1)


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1)


class ModerationRequest(BaseModel):
    is_approved: Optional[bool] = None
    is_flagged: Optional[bool] = None


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    entity_type: str
    entity_id: int
    content: str
    user: Optional[UserRef] = None
    is_approved: bool
    is_flagged: bool
    moderated_by: Optional[int] = None
    moderated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CommentSettingsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    enabled: bool = True
    news_enabled: bool = True
    applications_enabled: bool = False
    events_enabled: bool = True
    require_moderation: bool = False
    max_length: int = Field(default=1000, ge=1, le=10000)
