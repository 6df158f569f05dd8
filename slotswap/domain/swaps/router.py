"""Swap router - FastAPI endpoints for swap negotiation"""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, status
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import User
from ...services.notification_service import background_dispatcher
from ..slots.schemas import to_slot_response
from .schemas import SwapRequestCreate, SwapResponseCreate, to_swap_request_response
from .service import SwapCoordinator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/swap", tags=["Swap"])


def get_swap_coordinator(
    background_tasks: BackgroundTasks, db: Session = Depends(get_db)
) -> SwapCoordinator:
    """Dependency injection for SwapCoordinator; notifications go out after the response"""
    return SwapCoordinator(db, dispatch=background_dispatcher(background_tasks))


@router.get("/swappable-slots")
def get_swappable_slots(
    current_user: User = Depends(get_current_user),
    coordinator: SwapCoordinator = Depends(get_swap_coordinator),
):
    """Get all swappable slots from other users"""
    slots = coordinator.get_swappable_slots(current_user)
    return {"count": len(slots), "slots": [to_slot_response(s, include_owner=True) for s in slots]}


@router.post("/swap-request", status_code=status.HTTP_201_CREATED)
def create_swap_request(
    data: SwapRequestCreate,
    current_user: User = Depends(get_current_user),
    coordinator: SwapCoordinator = Depends(get_swap_coordinator),
):
    """Offer one of my swappable slots for another user's swappable slot"""
    swap_request = coordinator.create_swap_request(current_user, data.mySlotId, data.theirSlotId)
    return {
        "message": "Swap request created successfully",
        "swapRequest": to_swap_request_response(swap_request),
    }


@router.post("/swap-response/{request_id}")
def respond_to_swap_request(
    request_id: str,
    data: SwapResponseCreate,
    current_user: User = Depends(get_current_user),
    coordinator: SwapCoordinator = Depends(get_swap_coordinator),
):
    """Accept or reject an incoming swap request"""
    swap_request = coordinator.respond_to_swap_request(current_user, request_id, data.accepted)
    outcome = "accepted" if data.accepted else "rejected"
    return {
        "message": f"Swap request {outcome} successfully",
        "swapRequest": to_swap_request_response(swap_request),
    }


@router.get("/incoming-requests")
def get_incoming_requests(
    current_user: User = Depends(get_current_user),
    coordinator: SwapCoordinator = Depends(get_swap_coordinator),
):
    """Get swap requests addressed to the current user"""
    requests = coordinator.get_incoming_requests(current_user)
    return {"count": len(requests), "requests": [to_swap_request_response(r) for r in requests]}


@router.get("/outgoing-requests")
def get_outgoing_requests(
    current_user: User = Depends(get_current_user),
    coordinator: SwapCoordinator = Depends(get_swap_coordinator),
):
    """Get swap requests made by the current user"""
    requests = coordinator.get_outgoing_requests(current_user)
    return {"count": len(requests), "requests": [to_swap_request_response(r) for r in requests]}
