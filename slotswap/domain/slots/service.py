"""Slot service - Owner-facing slot operations and the mutation guard"""

import logging

from sqlalchemy.orm import Session

from ...errors import ConflictError, ForbiddenError, InvalidOperationError, NotFoundError
from ...models import Slot, SlotStatus, User
from .repository import SlotRepository
from .schemas import SlotCreate, SlotUpdate

logger = logging.getLogger(__name__)


class SlotService:
    """Service layer for slot business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SlotRepository()

    def get_slots(self, user: User) -> list[Slot]:
        """Get all slots owned by a user"""
        return self.repo.get_slots_by_owner(self.db, user.id)

    def get_owned_slot(self, slot_id: str, user: User) -> Slot:
        """Get a slot the user owns"""
        slot = self.repo.get_slot_by_id(self.db, slot_id)
        if not slot:
            raise NotFoundError("Event not found")
        if slot.owner_id != user.id:
            raise ForbiddenError("Not authorized to modify this event")
        return slot

    def create_slot(self, data: SlotCreate, user: User) -> Slot:
        """Create a new slot with validation"""
        status = data.status or SlotStatus.BUSY
        if status == SlotStatus.SWAP_PENDING:
            raise InvalidOperationError("SWAP_PENDING can only be set by a swap request")
        if data.endTime <= data.startTime:
            raise InvalidOperationError("End time must be after start time")

        slot = self.repo.create_slot(
            self.db,
            user.id,
            title=data.title,
            start_time=data.startTime,
            end_time=data.endTime,
            status=status.value,
        )
        logger.info(f"📅 Created slot {slot.id} ({slot.status}) for user {user.id}")
        return slot

    def update_slot(self, slot_id: str, data: SlotUpdate, user: User) -> Slot:
        """Update a slot; rejected while it is locked in a pending swap"""
        slot = self.get_owned_slot(slot_id, user)

        if slot.status == SlotStatus.SWAP_PENDING.value:
            raise InvalidOperationError("Cannot update event while a swap is pending")
        if data.status == SlotStatus.SWAP_PENDING:
            raise InvalidOperationError("SWAP_PENDING can only be set by a swap request")

        updates = {}
        if data.title is not None:
            updates["title"] = data.title
        if data.startTime is not None:
            updates["start_time"] = data.startTime
        if data.endTime is not None:
            updates["end_time"] = data.endTime
        if data.status is not None:
            updates["status"] = data.status.value

        start = updates.get("start_time", slot.start_time)
        end = updates.get("end_time", slot.end_time)
        if end <= start:
            raise InvalidOperationError("End time must be after start time")

        if not updates:
            return slot

        if not self.repo.update_slot(self.db, slot, slot.version, **updates):
            self.db.rollback()
            logger.warning(f"⚠️ Slot {slot_id} changed while being updated by user {user.id}")
            raise ConflictError("Event was modified by another request. Please retry.")

        self.db.commit()
        self.db.refresh(slot)
        logger.info(f"✏️ Updated slot {slot.id} for user {user.id}: {sorted(updates)}")
        return slot

    def delete_slot(self, slot_id: str, user: User) -> dict:
        """Delete a slot; rejected while it is locked in a pending swap"""
        slot = self.get_owned_slot(slot_id, user)

        if slot.status == SlotStatus.SWAP_PENDING.value:
            raise InvalidOperationError("Cannot delete event while a swap is pending")

        if not self.repo.delete_slot(self.db, slot, slot.version):
            self.db.rollback()
            logger.warning(f"⚠️ Slot {slot_id} changed while being deleted by user {user.id}")
            raise ConflictError("Event was modified by another request. Please retry.")

        self.db.commit()
        logger.info(f"🗑️ Deleted slot {slot_id} for user {user.id}")
        return {"message": "Event deleted successfully"}
