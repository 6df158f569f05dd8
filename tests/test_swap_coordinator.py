import pytest

from slotswap.domain.swaps.repository import SwapLedger
from slotswap.domain.swaps.service import SwapCoordinator
from slotswap.errors import ConflictError, ForbiddenError, InvalidOperationError, NotFoundError
from slotswap.models import Slot, SlotStatus, SwapRequest, SwapRequestStatus
from slotswap.services.notification_service import (
    SWAP_REQUEST_ACCEPTED,
    SWAP_REQUEST_RECEIVED,
    SWAP_REQUEST_REJECTED,
)


@pytest.fixture
def alice_and_bob(make_user, make_slot):
    alice, bob = make_user("Alice"), make_user("Bob")
    s1 = make_slot(alice, title="Alice shift", hours_from_base=1)
    s2 = make_slot(bob, title="Bob shift", hours_from_base=3)
    return alice, bob, s1, s2


def _reload(db, *objs):
    db.expire_all()
    return [db.get(type(o), o.id) for o in objs]


def test_create_locks_both_slots(db, alice_and_bob, dispatcher):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db, dispatch=dispatcher)

    request = coordinator.create_swap_request(alice, s1.id, s2.id)

    assert request.status == SwapRequestStatus.PENDING.value
    assert request.requester_id == alice.id
    assert request.target_user_id == bob.id
    assert (request.requester_slot_id, request.target_slot_id) == (s1.id, s2.id)
    s1, s2 = _reload(db, s1, s2)
    assert s1.status == s2.status == SlotStatus.SWAP_PENDING.value


def test_accept_swaps_owners(db, alice_and_bob, dispatcher):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db, dispatch=dispatcher)
    request = coordinator.create_swap_request(alice, s1.id, s2.id)

    resolved = coordinator.respond_to_swap_request(bob, request.id, accepted=True)

    assert resolved.status == SwapRequestStatus.ACCEPTED.value
    s1, s2 = _reload(db, s1, s2)
    assert s1.owner_id == bob.id
    assert s2.owner_id == alice.id
    assert s1.status == s2.status == SlotStatus.BUSY.value


def test_reject_restores_swappable(db, alice_and_bob, dispatcher):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db, dispatch=dispatcher)
    request = coordinator.create_swap_request(alice, s1.id, s2.id)

    resolved = coordinator.respond_to_swap_request(bob, request.id, accepted=False)

    assert resolved.status == SwapRequestStatus.REJECTED.value
    s1, s2 = _reload(db, s1, s2)
    assert s1.owner_id == alice.id
    assert s2.owner_id == bob.id
    assert s1.status == s2.status == SlotStatus.SWAPPABLE.value


def test_self_swap_is_invalid(db, make_user, make_slot):
    alice = make_user()
    s1 = make_slot(alice)
    s1b = make_slot(alice, hours_from_base=2)

    with pytest.raises(InvalidOperationError, match="own slot"):
        SwapCoordinator(db).create_swap_request(alice, s1.id, s1b.id)
    with pytest.raises(InvalidOperationError):
        SwapCoordinator(db).create_swap_request(alice, s1.id, s1.id)

    assert db.query(SwapRequest).count() == 0
    s1, s1b = _reload(db, s1, s1b)
    assert s1.status == s1b.status == SlotStatus.SWAPPABLE.value


def test_create_preconditions_in_order(db, alice_and_bob, make_user, make_slot):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db)

    with pytest.raises(NotFoundError):
        coordinator.create_swap_request(alice, s1.id, "00000000-0000-0000-0000-000000000000")
    # Offering a slot owned by someone else
    with pytest.raises(ForbiddenError):
        coordinator.create_swap_request(alice, s2.id, s2.id)

    busy = make_slot(alice, status=SlotStatus.BUSY, hours_from_base=6)
    with pytest.raises(InvalidOperationError, match="Your slot"):
        coordinator.create_swap_request(alice, busy.id, s2.id)

    bob_busy = make_slot(bob, status=SlotStatus.BUSY, hours_from_base=8)
    with pytest.raises(InvalidOperationError, match="not available"):
        coordinator.create_swap_request(alice, s1.id, bob_busy.id)

    assert db.query(SwapRequest).count() == 0


def test_pending_slot_cannot_join_second_request(db, alice_and_bob, make_user, make_slot):
    alice, bob, s1, s2 = alice_and_bob
    carol = make_user("Carol")
    s3 = make_slot(carol, hours_from_base=5)
    coordinator = SwapCoordinator(db)
    coordinator.create_swap_request(alice, s1.id, s2.id)

    with pytest.raises(InvalidOperationError):
        coordinator.create_swap_request(carol, s3.id, s2.id)

    (s3,) = _reload(db, s3)
    assert s3.status == SlotStatus.SWAPPABLE.value
    pending = db.query(SwapRequest).filter(SwapRequest.status == SwapRequestStatus.PENDING.value).all()
    assert len(pending) == 1
    assert {pending[0].requester_slot_id, pending[0].target_slot_id} == {s1.id, s2.id}


def test_respond_twice_is_invalid(db, alice_and_bob):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db)
    request = coordinator.create_swap_request(alice, s1.id, s2.id)
    coordinator.respond_to_swap_request(bob, request.id, accepted=True)

    with pytest.raises(InvalidOperationError, match="already been processed"):
        coordinator.respond_to_swap_request(bob, request.id, accepted=False)

    (request,) = _reload(db, request)
    s1, s2 = _reload(db, s1, s2)
    assert request.status == SwapRequestStatus.ACCEPTED.value
    assert (s1.owner_id, s2.owner_id) == (bob.id, alice.id)
    assert s1.status == s2.status == SlotStatus.BUSY.value


def test_only_target_may_respond(db, alice_and_bob):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db)
    request = coordinator.create_swap_request(alice, s1.id, s2.id)

    with pytest.raises(ForbiddenError):
        coordinator.respond_to_swap_request(alice, request.id, accepted=True)
    with pytest.raises(NotFoundError):
        coordinator.respond_to_swap_request(bob, "00000000-0000-0000-0000-000000000000", accepted=True)

    (request,) = _reload(db, request)
    assert request.status == SwapRequestStatus.PENDING.value


def test_respond_when_slot_vanished(db, alice_and_bob):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db)
    request = coordinator.create_swap_request(alice, s1.id, s2.id)

    db.query(Slot).filter(Slot.id == s1.id).delete()
    db.commit()

    with pytest.raises(NotFoundError, match="no longer exist"):
        coordinator.respond_to_swap_request(bob, request.id, accepted=True)


def test_notifications_sent_to_counterparty(db, alice_and_bob, dispatcher):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db, dispatch=dispatcher)

    request = coordinator.create_swap_request(alice, s1.id, s2.id)
    coordinator.respond_to_swap_request(bob, request.id, accepted=True)

    (received_to, received_event, received), (accepted_to, accepted_event, accepted) = dispatcher.sent
    assert (received_to, received_event) == (bob.id, SWAP_REQUEST_RECEIVED)
    payload = received["swapRequest"]
    assert payload["id"] == request.id
    assert payload["status"] == "PENDING"
    assert payload["requester"]["name"] == "Alice"
    assert payload["requesterSlot"]["title"] == "Alice shift"
    assert payload["targetSlot"]["title"] == "Bob shift"

    assert (accepted_to, accepted_event) == (alice.id, SWAP_REQUEST_ACCEPTED)
    assert accepted == {"swapRequest": {"id": request.id, "status": "ACCEPTED"}}


def test_reject_notifies_requester(db, alice_and_bob, dispatcher):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db, dispatch=dispatcher)
    request = coordinator.create_swap_request(alice, s1.id, s2.id)

    coordinator.respond_to_swap_request(bob, request.id, accepted=False)

    assert dispatcher.sent[-1] == (
        alice.id,
        SWAP_REQUEST_REJECTED,
        {"swapRequest": {"id": request.id, "status": "REJECTED"}},
    )


def test_notification_failure_does_not_fail_operation(db, alice_and_bob):
    alice, bob, s1, s2 = alice_and_bob

    def broken(user_id, event, data):
        raise RuntimeError("socket layer down")

    coordinator = SwapCoordinator(db, dispatch=broken)
    request = coordinator.create_swap_request(alice, s1.id, s2.id)
    resolved = coordinator.respond_to_swap_request(bob, request.id, accepted=True)

    assert resolved.status == SwapRequestStatus.ACCEPTED.value


def test_claim_lost_after_validation_rolls_back(db, session_factory, alice_and_bob, make_user, make_slot):
    alice, bob, s1, s2 = alice_and_bob
    carol = make_user("Carol")
    s3 = make_slot(carol, hours_from_base=5)

    # Both slots validated as SWAPPABLE by this request...
    assert s1.status == s2.status == SlotStatus.SWAPPABLE.value

    # ...then a competing request locks the target slot first
    other = session_factory()
    SwapCoordinator(other).create_swap_request(carol, s3.id, s2.id)
    other.close()

    with pytest.raises(ConflictError):
        SwapLedger.open_request(db, alice.id, s1, s2)

    s1, s2 = _reload(db, s1, s2)
    # The offered slot was not left half-claimed
    assert s1.status == SlotStatus.SWAPPABLE.value
    assert s2.status == SlotStatus.SWAP_PENDING.value
    assert db.query(SwapRequest).filter(SwapRequest.requester_id == alice.id).count() == 0


def test_resolve_refuses_already_closed_request(db, session_factory, alice_and_bob):
    alice, bob, s1, s2 = alice_and_bob
    request = SwapCoordinator(db).create_swap_request(alice, s1.id, s2.id)
    s1, s2 = _reload(db, s1, s2)

    # A concurrent response wins the race
    other = session_factory()
    SwapCoordinator(other).respond_to_swap_request(bob, request.id, accepted=False)
    other.close()

    with pytest.raises(ConflictError):
        SwapLedger.resolve_request(db, request, s1, s2, accepted=True)

    (request,) = _reload(db, request)
    s1, s2 = _reload(db, s1, s2)
    assert request.status == SwapRequestStatus.REJECTED.value
    assert (s1.owner_id, s2.owner_id) == (alice.id, bob.id)


def test_swappable_slots_exclude_own_and_locked(db, alice_and_bob, make_user, make_slot):
    alice, bob, s1, s2 = alice_and_bob
    carol = make_user("Carol")
    early = make_slot(carol, hours_from_base=0)
    make_slot(carol, status=SlotStatus.BUSY, hours_from_base=4)

    slots = SwapCoordinator(db).get_swappable_slots(alice)

    assert [s.id for s in slots] == [early.id, s2.id]
    assert slots[1].owner.name == "Bob"


def test_incoming_and_outgoing_newest_first(db, alice_and_bob, make_slot):
    alice, bob, s1, s2 = alice_and_bob
    coordinator = SwapCoordinator(db)
    first = coordinator.create_swap_request(alice, s1.id, s2.id)
    coordinator.respond_to_swap_request(bob, first.id, accepted=False)
    second = coordinator.create_swap_request(alice, s1.id, s2.id)

    incoming = coordinator.get_incoming_requests(bob)
    outgoing = coordinator.get_outgoing_requests(alice)

    assert [r.id for r in incoming] == [second.id, first.id]
    assert [r.id for r in outgoing] == [second.id, first.id]
    assert coordinator.get_incoming_requests(alice) == []
    assert incoming[0].requester.name == "Alice"
    assert incoming[0].target_slot.id == s2.id
