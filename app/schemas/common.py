import math
from typing import List, Optional
from pydantic import BaseModel, ConfigDict


def page_envelope(key: str, items: list, total: int, page: int, page_size: int) -> dict:
    """Collection envelope shared by every list endpoint."""
    total_pages = math.ceil(total / page_size) if page_size > 0 else 0
    return {key: items, "total": total, "page": page, "page_size": page_size, "total_pages": total_pages}


class Message(BaseModel):
    message: str


class GroupRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    color: Optional[str] = None


class UserRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class TagRef(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    color: Optional[str] = None


class IdList(BaseModel):
    ids: List[int]
