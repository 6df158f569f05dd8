"""Slot repository - Database operations for slots (the slot store)"""

from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session, joinedload

from ...models import Slot, SlotStatus


class SlotRepository:
    """Repository for slot database operations"""

    @staticmethod
    def get_slot_by_id(db: Session, slot_id: str) -> Optional[Slot]:
        """Get a slot by ID"""
        return db.query(Slot).filter(Slot.id == slot_id).first()

    @staticmethod
    def get_slots_by_owner(db: Session, owner_id: str) -> list[Slot]:
        """Get all slots for a user, earliest first"""
        return (
            db.query(Slot)
            .filter(Slot.owner_id == owner_id)
            .order_by(Slot.start_time.asc())
            .all()
        )

    @staticmethod
    def get_swappable_slots(db: Session, exclude_owner_id: str) -> list[Slot]:
        """Get swappable slots belonging to other users, earliest first"""
        return (
            db.query(Slot)
            .options(joinedload(Slot.owner))
            .filter(Slot.status == SlotStatus.SWAPPABLE.value, Slot.owner_id != exclude_owner_id)
            .order_by(Slot.start_time.asc())
            .all()
        )

    @staticmethod
    def create_slot(db: Session, owner_id: str, **slot_data) -> Slot:
        """Create a new slot"""
        slot = Slot(owner_id=owner_id, **slot_data)
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    @staticmethod
    def update_slot(db: Session, slot: Slot, expected_version: int, **updates) -> bool:
        """
        Write owner edits if the row is unchanged since it was read.

        The row must still carry expected_version and must not be locked in a
        swap. Returns False (and writes nothing) otherwise. Does not commit.
        """
        result = db.execute(
            update(Slot)
            .where(
                Slot.id == slot.id,
                Slot.version == expected_version,
                Slot.status != SlotStatus.SWAP_PENDING.value,
            )
            .values(version=Slot.version + 1, **updates)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def delete_slot(db: Session, slot: Slot, expected_version: int) -> bool:
        """Delete a slot if it is unchanged and not locked in a swap. Does not commit."""
        result = db.execute(
            delete(Slot)
            .where(
                Slot.id == slot.id,
                Slot.version == expected_version,
                Slot.status != SlotStatus.SWAP_PENDING.value,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def transition_slot(
        db: Session,
        slot_id: str,
        expected_status: SlotStatus,
        expected_owner_id: str,
        new_status: SlotStatus,
        new_owner_id: Optional[str] = None,
    ) -> bool:
        """
        Compare-and-set a slot's status (and optionally its owner).

        Only applies when the slot is still in expected_status and still owned
        by expected_owner_id. Returns whether the row was changed. Does not commit.
        """
        values = {"status": new_status.value, "version": Slot.version + 1}
        if new_owner_id is not None:
            values["owner_id"] = new_owner_id

        result = db.execute(
            update(Slot)
            .where(
                Slot.id == slot_id,
                Slot.status == expected_status.value,
                Slot.owner_id == expected_owner_id,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1
