from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AppGroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    order: int = 0
    is_active: bool = True
    is_private: bool = False
    owner_group_id: Optional[int] = None


class AppGroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None
    is_private: Optional[bool] = None
    owner_group_id: Optional[int] = None


class ApplicationCreate(BaseModel):
    app_group_id: int
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None
    url: str = Field(min_length=1, max_length=500)
    icon: Optional[str] = None
    order: int = 0
    is_active: bool = True


class ApplicationUpdate(BaseModel):
    app_group_id: Optional[int] = None
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    url: Optional[str] = Field(default=None, min_length=1, max_length=500)
    icon: Optional[str] = None
    order: Optional[int] = None
    is_active: Optional[bool] = None


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    app_group_id: int
    name: str
    description: Optional[str] = None
    url: str
    icon: Optional[str] = None
    order: int
    is_active: bool


class AppGroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    color: Optional[str] = None
    order: int
    is_active: bool
    is_private: bool
    owner_group_id: Optional[int] = None
    applications: List[ApplicationResponse] = []
