"""Class entity and request/response schemas"""
from datetime import datetime, UTC
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


def utc_now():
    return datetime.now(UTC)


class ClassBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)


class ClassCreate(ClassBase):
    pass


class ClassUpdate(ClassBase):
    pass


class ClassDB(ClassBase):
    """Stored class entity; id is None until the repository assigns one"""
    id: Optional[int] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class ClassResponse(BaseModel):
    """Read-facing representation, also the cached value"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str

    @classmethod
    def from_entity(cls, entity: ClassDB) -> "ClassResponse":
        return cls(id=entity.id, name=entity.name)


class APIResponse(BaseModel):
    """Response envelope used by the HTTP layer"""
    model_config = ConfigDict(populate_by_name=True)

    status_code: int = Field(..., alias="statusCode")
    message: str
    data: Optional[Any] = None
