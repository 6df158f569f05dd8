"""Swap coordinator - The swap negotiation state machine"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...errors import ForbiddenError, InvalidOperationError, NotFoundError
from ...models import Slot, SlotStatus, SwapRequest, SwapRequestStatus, User
from ...services.notification_service import (
    SWAP_REQUEST_ACCEPTED,
    SWAP_REQUEST_RECEIVED,
    SWAP_REQUEST_REJECTED,
    Dispatcher,
)
from ..slots.repository import SlotRepository
from .repository import SwapLedger
from .schemas import to_swap_request_response

logger = logging.getLogger(__name__)


class SwapCoordinator:
    """
    Service layer for swap negotiation.

    Slot states: BUSY, SWAPPABLE, SWAP_PENDING. Request states: PENDING,
    ACCEPTED, REJECTED. A request moves two SWAPPABLE slots into SWAP_PENDING;
    answering it moves both out again (BUSY with owners exchanged on accept,
    SWAPPABLE with owners unchanged on reject).
    """

    def __init__(self, db: Session, dispatch: Optional[Dispatcher] = None):
        self.db = db
        self.slots = SlotRepository()
        self.ledger = SwapLedger()
        self.dispatch = dispatch

    def get_swappable_slots(self, user: User) -> list[Slot]:
        """Swappable slots of every other user, earliest first"""
        return self.slots.get_swappable_slots(self.db, user.id)

    def get_incoming_requests(self, user: User) -> list[SwapRequest]:
        return self.ledger.get_incoming_requests(self.db, user.id)

    def get_outgoing_requests(self, user: User) -> list[SwapRequest]:
        return self.ledger.get_outgoing_requests(self.db, user.id)

    def create_swap_request(self, user: User, my_slot_id: str, their_slot_id: str) -> SwapRequest:
        """Offer my_slot in exchange for their_slot"""
        logger.info(f"🔁 Creating swap request: user={user.id} mySlot={my_slot_id} theirSlot={their_slot_id}")

        my_slot = self.slots.get_slot_by_id(self.db, my_slot_id)
        their_slot = self.slots.get_slot_by_id(self.db, their_slot_id)

        if not my_slot or not their_slot:
            raise NotFoundError("One or both slots not found")
        if my_slot.owner_id != user.id:
            raise ForbiddenError("You do not own the slot you are offering")
        if their_slot.owner_id == user.id:
            raise InvalidOperationError("Cannot swap with your own slot")
        if my_slot.status != SlotStatus.SWAPPABLE.value:
            raise InvalidOperationError("Your slot is not marked as swappable")
        if their_slot.status != SlotStatus.SWAPPABLE.value:
            raise InvalidOperationError("The requested slot is not available for swapping")

        swap_request = self.ledger.open_request(self.db, user.id, my_slot, their_slot)
        resolved = self.ledger.get_resolved_request(self.db, swap_request.id)
        logger.info(f"✅ Swap request {resolved.id} created, waiting on user {resolved.target_user_id}")

        self._notify(
            resolved.target_user_id,
            SWAP_REQUEST_RECEIVED,
            {"swapRequest": to_swap_request_response(resolved).model_dump(mode="json")},
        )
        return resolved

    def respond_to_swap_request(self, user: User, request_id: str, accepted: bool) -> SwapRequest:
        """Accept or reject a swap request addressed to the user"""
        swap_request = self.ledger.get_request_by_id(self.db, request_id)

        if not swap_request:
            raise NotFoundError("Swap request not found")
        if swap_request.target_user_id != user.id:
            raise ForbiddenError("You are not authorized to respond to this swap request")
        if swap_request.status != SwapRequestStatus.PENDING.value:
            raise InvalidOperationError("This swap request has already been processed")

        requester_slot = self.slots.get_slot_by_id(self.db, swap_request.requester_slot_id)
        target_slot = self.slots.get_slot_by_id(self.db, swap_request.target_slot_id)
        if not requester_slot or not target_slot:
            raise NotFoundError("One or both slots no longer exist")

        swap_request = self.ledger.resolve_request(
            self.db, swap_request, requester_slot, target_slot, accepted
        )
        logger.info(f"✅ Swap request {swap_request.id} {swap_request.status} by user {user.id}")

        event = SWAP_REQUEST_ACCEPTED if accepted else SWAP_REQUEST_REJECTED
        self._notify(
            swap_request.requester_id,
            event,
            {"swapRequest": {"id": swap_request.id, "status": swap_request.status}},
        )
        return swap_request

    def _notify(self, user_id: str, event: str, data: dict) -> None:
        """Hand an event to the notification channel; never fails the caller"""
        if self.dispatch is None:
            return
        try:
            self.dispatch(user_id, event, data)
        except Exception as e:
            logger.error(f"❌ Failed to dispatch {event} to user {user_id}: {e}")
