"""Swap domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, StrictBool, field_validator

from ...models import SwapRequestStatus
from ...shared.validators import validate_uuid
from ..slots.schemas import OwnerSummary, SlotResponse, to_owner_summary, to_slot_response


class SwapRequestCreate(BaseModel):
    """Schema for proposing a swap of my slot for theirs"""

    mySlotId: str
    theirSlotId: str

    @field_validator("mySlotId", "theirSlotId")
    @classmethod
    def validate_slot_id(cls, v):
        if not validate_uuid(v):
            raise ValueError("Valid slot id is required")
        return v


class SwapResponseCreate(BaseModel):
    """Schema for answering a swap request"""

    accepted: StrictBool


class SwapRequestResponse(BaseModel):
    """Schema for swap request response with both parties and slots resolved"""

    id: str
    status: SwapRequestStatus
    requesterId: str
    requesterSlotId: str
    targetUserId: str
    targetSlotId: str
    requester: Optional[OwnerSummary] = None
    targetUser: Optional[OwnerSummary] = None
    requesterSlot: Optional[SlotResponse] = None
    targetSlot: Optional[SlotResponse] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


def to_swap_request_response(swap_request) -> SwapRequestResponse:
    """Build the API representation of a swap request with both parties and slots"""
    return SwapRequestResponse(
        id=swap_request.id,
        status=swap_request.status,
        requesterId=swap_request.requester_id,
        requesterSlotId=swap_request.requester_slot_id,
        targetUserId=swap_request.target_user_id,
        targetSlotId=swap_request.target_slot_id,
        requester=to_owner_summary(swap_request.requester),
        targetUser=to_owner_summary(swap_request.target_user),
        requesterSlot=to_slot_response(swap_request.requester_slot),
        targetSlot=to_slot_response(swap_request.target_slot),
        createdAt=swap_request.created_at,
        updatedAt=swap_request.updated_at,
    )
