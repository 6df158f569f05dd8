"""Slot domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...models import SlotStatus
from ...shared.validators import normalize_utc


class SlotCreate(BaseModel):
    """Schema for creating a new slot"""

    title: str = Field(..., min_length=1, max_length=100)
    startTime: datetime
    endTime: datetime
    status: Optional[SlotStatus] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("startTime", "endTime")
    @classmethod
    def to_utc(cls, v):
        return normalize_utc(v)


class SlotUpdate(BaseModel):
    """Schema for updating an existing slot; omitted fields are left unchanged"""

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    startTime: Optional[datetime] = None
    endTime: Optional[datetime] = None
    status: Optional[SlotStatus] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("startTime", "endTime")
    @classmethod
    def to_utc(cls, v):
        return normalize_utc(v)


class OwnerSummary(BaseModel):
    id: str
    name: str
    email: str


class SlotResponse(BaseModel):
    """Schema for slot response"""

    id: str
    title: str
    startTime: datetime
    endTime: datetime
    status: SlotStatus
    userId: str
    owner: Optional[OwnerSummary] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


def to_owner_summary(user) -> Optional[OwnerSummary]:
    if user is None:
        return None
    return OwnerSummary(id=user.id, name=user.name, email=user.email)


def to_slot_response(slot, include_owner: bool = False) -> Optional[SlotResponse]:
    """Build the API representation of a slot (None for a deleted slot)"""
    if slot is None:
        return None
    return SlotResponse(
        id=slot.id,
        title=slot.title,
        startTime=slot.start_time,
        endTime=slot.end_time,
        status=slot.status,
        userId=slot.owner_id,
        owner=to_owner_summary(slot.owner) if include_owner else None,
        createdAt=slot.created_at,
        updatedAt=slot.updated_at,
    )
