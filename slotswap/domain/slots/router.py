"""Slot router - FastAPI endpoints for the caller's own slots"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...schemas import MessageResponse
from .schemas import SlotCreate, SlotUpdate, to_slot_response
from .service import SlotService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])


def get_slot_service(db: Session = Depends(get_db)) -> SlotService:
    """Dependency injection for SlotService"""
    return SlotService(db)


@router.get("")
def get_my_events(
    current_user: User = Depends(get_current_user),
    service: SlotService = Depends(get_slot_service),
):
    """Get all slots owned by the current user"""
    slots = service.get_slots(current_user)
    return {"count": len(slots), "events": [to_slot_response(s) for s in slots]}


@router.post("", status_code=status.HTTP_201_CREATED)
def create_event(
    data: SlotCreate,
    current_user: User = Depends(get_current_user),
    service: SlotService = Depends(get_slot_service),
):
    """Create a new slot (status defaults to BUSY)"""
    slot = service.create_slot(data, current_user)
    return {"message": "Event created successfully", "event": to_slot_response(slot)}


@router.put("/{slot_id}")
def update_event(
    slot_id: str,
    data: SlotUpdate,
    current_user: User = Depends(get_current_user),
    service: SlotService = Depends(get_slot_service),
):
    """Update a slot"""
    slot = service.update_slot(slot_id, data, current_user)
    return {"message": "Event updated successfully", "event": to_slot_response(slot)}


@router.delete("/{slot_id}", response_model=MessageResponse)
def delete_event(
    slot_id: str,
    current_user: User = Depends(get_current_user),
    service: SlotService = Depends(get_slot_service),
):
    """Delete a slot"""
    return service.delete_slot(slot_id, current_user)
