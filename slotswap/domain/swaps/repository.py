"""Swap ledger - Persistence and protocol rules for swap requests"""

import logging
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ...errors import ConflictError
from ...models import Slot, SlotStatus, SwapRequest, SwapRequestStatus
from ..slots.repository import SlotRepository

logger = logging.getLogger(__name__)


def _resolved(query):
    return query.options(
        joinedload(SwapRequest.requester),
        joinedload(SwapRequest.target_user),
        joinedload(SwapRequest.requester_slot),
        joinedload(SwapRequest.target_slot),
    )


class SwapLedger:
    """
    Repository for swap request records.

    Every write here is a single transaction: the slot claims/releases and the
    request row either all commit or none do. Slot writes are compare-and-set,
    so a slot that moved since it was validated aborts the whole transaction
    with ConflictError.
    """

    @staticmethod
    def get_request_by_id(db: Session, request_id: str) -> Optional[SwapRequest]:
        """Get a swap request by ID"""
        return db.query(SwapRequest).filter(SwapRequest.id == request_id).first()

    @staticmethod
    def get_resolved_request(db: Session, request_id: str) -> Optional[SwapRequest]:
        """Get a swap request with both parties and both slots loaded"""
        return _resolved(db.query(SwapRequest)).filter(SwapRequest.id == request_id).first()

    @staticmethod
    def get_incoming_requests(db: Session, user_id: str) -> list[SwapRequest]:
        """Requests awaiting (or answered by) this user, newest first"""
        return (
            _resolved(db.query(SwapRequest))
            .filter(SwapRequest.target_user_id == user_id)
            .order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
            .all()
        )

    @staticmethod
    def get_outgoing_requests(db: Session, user_id: str) -> list[SwapRequest]:
        """Requests made by this user, newest first"""
        return (
            _resolved(db.query(SwapRequest))
            .filter(SwapRequest.requester_id == user_id)
            .order_by(SwapRequest.created_at.desc(), SwapRequest.id.desc())
            .all()
        )

    @staticmethod
    def open_request(
        db: Session, requester_id: str, requester_slot: Slot, target_slot: Slot
    ) -> SwapRequest:
        """
        Lock both slots into SWAP_PENDING and record a PENDING request.

        The target user is the owner of target_slot at this moment.
        """
        requester_slot_id, target_slot_id = requester_slot.id, target_slot.id
        target_user_id = target_slot.owner_id
        try:
            claimed = SlotRepository.transition_slot(
                db, requester_slot_id, SlotStatus.SWAPPABLE, requester_id, SlotStatus.SWAP_PENDING
            ) and SlotRepository.transition_slot(
                db, target_slot_id, SlotStatus.SWAPPABLE, target_user_id, SlotStatus.SWAP_PENDING
            )
            if not claimed:
                db.rollback()
                logger.warning(
                    f"⚠️ Lost race claiming slots {requester_slot_id}/{target_slot_id} for user {requester_id}"
                )
                raise ConflictError("One of the slots is no longer available for swapping")

            swap_request = SwapRequest(
                requester_id=requester_id,
                requester_slot_id=requester_slot_id,
                target_user_id=target_user_id,
                target_slot_id=target_slot_id,
                status=SwapRequestStatus.PENDING.value,
            )
            db.add(swap_request)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        db.refresh(swap_request)
        return swap_request

    @staticmethod
    def resolve_request(
        db: Session,
        swap_request: SwapRequest,
        requester_slot: Slot,
        target_slot: Slot,
        accepted: bool,
    ) -> SwapRequest:
        """
        Close a PENDING request.

        Accepted: owners of the two slots are exchanged and both become BUSY.
        Rejected: both slots return to SWAPPABLE with owners unchanged.
        """
        request_id = swap_request.id
        requester_id = swap_request.requester_id
        target_user_id = swap_request.target_user_id

        if accepted:
            new_status = SwapRequestStatus.ACCEPTED
            slot_status = SlotStatus.BUSY
            requester_slot_owner, target_slot_owner = target_user_id, requester_id
        else:
            new_status = SwapRequestStatus.REJECTED
            slot_status = SlotStatus.SWAPPABLE
            requester_slot_owner, target_slot_owner = None, None

        try:
            released = SlotRepository.transition_slot(
                db,
                requester_slot.id,
                SlotStatus.SWAP_PENDING,
                requester_id,
                slot_status,
                new_owner_id=requester_slot_owner,
            ) and SlotRepository.transition_slot(
                db,
                target_slot.id,
                SlotStatus.SWAP_PENDING,
                target_user_id,
                slot_status,
                new_owner_id=target_slot_owner,
            )

            closed = False
            if released:
                result = db.execute(
                    update(SwapRequest)
                    .where(
                        SwapRequest.id == request_id,
                        SwapRequest.status == SwapRequestStatus.PENDING.value,
                    )
                    .values(status=new_status.value)
                    .execution_options(synchronize_session=False)
                )
                closed = result.rowcount == 1

            if not closed:
                db.rollback()
                logger.warning(f"⚠️ Swap request {request_id} changed while being resolved")
                raise ConflictError("This swap request was modified by another request. Please retry.")

            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        db.refresh(swap_request)
        return swap_request
