"""Swap state machine, end to end swap flow and concurrent transitions."""

from __future__ import annotations

import sys
import threading
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.errors import ForbiddenError, NotFoundError, QuotaExceededError, StateConflictError, ValidationFailure
from logic.pseudonym import actor_pseudonym
from logic.swap_lifecycle import SwapAction, legal_actions, parse_action, plan_transition
from logic.validation import MessageCreate, SwapCreate, WardrobeItemCreate
from models.swap import SwapStatus
from models.tiers import MembershipTier
from models.wardrobe_item import HistoryType, ItemStatus


def _create_item(exchange, owner, **overrides):
    fields = {
        "title": "Denim jacket",
        "category": "OUTERWEAR",
        "size": "M",
        "condition": "GOOD",
        "available_for_swap": True,
        "images": ["https://example.com/jacket.jpg"],
    }
    fields.update(overrides)
    return exchange.wardrobe.create_item(owner, WardrobeItemCreate(**fields))


def _request_swap(exchange, requester, item, message=None):
    return exchange.swaps.create_swap(
        requester, SwapCreate(item_id=item.id, delivery_method="MEETUP", message=message)
    )


def test_transition_table() -> None:
    assert legal_actions(SwapStatus.PENDING) == {SwapAction.ACCEPT, SwapAction.DECLINE, SwapAction.CANCEL}
    assert legal_actions(SwapStatus.ACCEPTED) == {SwapAction.COMPLETE, SwapAction.CANCEL}
    for terminal in (SwapStatus.DECLINED, SwapStatus.COMPLETED, SwapStatus.CANCELED):
        assert legal_actions(terminal) == frozenset()

    plan = plan_transition(SwapStatus.ACCEPTED, SwapAction.COMPLETE, actor_is_owner=False, actor_is_requester=True)
    assert plan.to_status is SwapStatus.COMPLETED
    assert plan.item_status is ItemStatus.AVAILABLE
    assert plan.transfers_ownership


def test_role_is_checked_before_state() -> None:
    with pytest.raises(ForbiddenError):
        plan_transition(SwapStatus.COMPLETED, SwapAction.ACCEPT, actor_is_owner=False, actor_is_requester=True)
    with pytest.raises(StateConflictError) as excinfo:
        plan_transition(SwapStatus.PENDING, SwapAction.COMPLETE, actor_is_owner=True, actor_is_requester=False)
    assert excinfo.value.extra["current_status"] == "PENDING"


def test_unknown_action_rejected() -> None:
    assert parse_action(" Accept ") is SwapAction.ACCEPT
    with pytest.raises(ValidationFailure):
        parse_action("steal")


def test_request_accept_complete_transfers_ownership(exchange, make_user) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    item = _create_item(exchange, owner)

    swap = _request_swap(exchange, requester, item, message="Can I borrow this?")
    assert swap.status is SwapStatus.PENDING
    assert exchange.wardrobe_store.get_item(item.id).status is ItemStatus.ON_LOAN

    accepted = exchange.swaps.apply_action(owner, swap.id, "accept")
    assert accepted.status is SwapStatus.ACCEPTED
    assert exchange.wardrobe_store.get_item(item.id).status is ItemStatus.ON_LOAN

    completed = exchange.swaps.apply_action(requester, swap.id, "complete")
    assert completed.status is SwapStatus.COMPLETED
    assert completed.completed_at is not None

    moved = exchange.wardrobe_store.get_item(item.id)
    assert moved.owner_id == requester.id
    assert moved.original_uploader_id == owner.id
    assert moved.status is ItemStatus.AVAILABLE
    assert moved.swap_count == 1
    swap_entries = [entry for entry in moved.history if entry.type is HistoryType.SWAP]
    assert len(swap_entries) == 1
    assert swap_entries[0].actor_ref == actor_pseudonym(owner.id, "test-secret")
    assert owner.id not in swap_entries[0].actor_ref

    messages = exchange.swaps.list_messages(owner, swap.id)
    assert [message.content for message in messages] == ["Can I borrow this?"]


def test_decline_releases_item(exchange, make_user) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    item = _create_item(exchange, owner)
    swap = _request_swap(exchange, requester, item)

    with pytest.raises(ForbiddenError):
        exchange.swaps.apply_action(requester, swap.id, "decline")
    declined = exchange.swaps.apply_action(owner, swap.id, "decline")
    assert declined.status is SwapStatus.DECLINED
    assert exchange.wardrobe_store.get_item(item.id).status is ItemStatus.AVAILABLE
    with pytest.raises(StateConflictError):
        exchange.swaps.apply_action(owner, swap.id, "accept")


def test_swap_request_guards(exchange, make_user) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    stranger = make_user("stranger")
    item = _create_item(exchange, owner)
    private = _create_item(exchange, owner, available_for_swap=False)

    with pytest.raises(ValidationFailure):
        _request_swap(exchange, owner, item)
    with pytest.raises(NotFoundError):
        _request_swap(exchange, requester, private)

    swap = _request_swap(exchange, requester, item)
    with pytest.raises(StateConflictError):
        _request_swap(exchange, stranger, item)
    with pytest.raises(NotFoundError):
        exchange.swaps.get_swap(stranger, swap.id)
    with pytest.raises(NotFoundError):
        exchange.swaps.post_message(stranger, swap.id, MessageCreate(content="hi"))


def test_active_swap_cap_for_basic_tier(exchange, make_user) -> None:
    owner = make_user("owner", MembershipTier.PRO)
    requester = make_user("requester")
    items = [_create_item(exchange, owner, title=f"Item {n}") for n in range(6)]
    for item in items[:5]:
        _request_swap(exchange, requester, item)
    with pytest.raises(QuotaExceededError):
        _request_swap(exchange, requester, items[5])
    assert exchange.wardrobe_store.get_item(items[5].id).status is ItemStatus.AVAILABLE


def test_messages_are_sequenced(exchange, make_user) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    swap = _request_swap(exchange, requester, _create_item(exchange, owner))
    first = exchange.swaps.post_message(requester, swap.id, MessageCreate(content="Hello"))
    second = exchange.swaps.post_message(owner, swap.id, MessageCreate(content="Hi there"))
    assert second.sequence == first.sequence + 1
    assert [m.sender_id for m in exchange.swaps.get_swap(owner, swap.id).messages] == [requester.id, owner.id]


def test_concurrent_accepts_have_exactly_one_winner(exchange, make_user) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    item = _create_item(exchange, owner)
    swap = _request_swap(exchange, requester, item)

    barrier = threading.Barrier(2)
    outcomes: list = []
    lock = threading.Lock()

    def accept() -> None:
        barrier.wait()
        try:
            result = exchange.swaps.apply_action(owner, swap.id, "accept")
        except StateConflictError as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=accept) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [o for o in outcomes if not isinstance(o, StateConflictError)]
    conflicts = [o for o in outcomes if isinstance(o, StateConflictError)]
    assert len(winners) == 1 and len(conflicts) == 1
    assert winners[0].status is SwapStatus.ACCEPTED
    stored = exchange.wardrobe_store.get_item(item.id)
    assert stored.status is ItemStatus.ON_LOAN
    assert stored.owner_id == owner.id
    assert stored.swap_count == 0


@pytest.mark.parametrize("accept_first", [False, True])
@pytest.mark.parametrize("canceller", ["owner", "requester"])
def test_either_party_can_cancel_open_swap(exchange, make_user, accept_first, canceller) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    item = _create_item(exchange, owner)
    swap = _request_swap(exchange, requester, item)
    if accept_first:
        exchange.swaps.apply_action(owner, swap.id, "accept")

    actor = owner if canceller == "owner" else requester
    canceled = exchange.swaps.apply_action(actor, swap.id, "cancel")
    assert canceled.status is SwapStatus.CANCELED
    released = exchange.wardrobe_store.get_item(item.id)
    assert released.status is ItemStatus.AVAILABLE
    assert released.owner_id == owner.id
    assert released.swap_count == 0


def _closed_swap(exchange, owner, requester, item, final_status):
    swap = _request_swap(exchange, requester, item)
    if final_status is SwapStatus.DECLINED:
        exchange.swaps.apply_action(owner, swap.id, "decline")
    elif final_status is SwapStatus.CANCELED:
        exchange.swaps.apply_action(requester, swap.id, "cancel")
    else:
        exchange.swaps.apply_action(owner, swap.id, "accept")
        exchange.swaps.apply_action(requester, swap.id, "complete")
    return swap


@pytest.mark.parametrize("final_status", [SwapStatus.DECLINED, SwapStatus.COMPLETED, SwapStatus.CANCELED])
def test_closed_swaps_reject_every_action(exchange, make_user, final_status) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    item = _create_item(exchange, owner)
    swap = _closed_swap(exchange, owner, requester, item, final_status)
    before = exchange.wardrobe_store.get_item(item.id)

    attempts = [(owner, "accept"), (owner, "decline"), (requester, "complete"), (requester, "cancel"), (owner, "cancel")]
    for actor, action in attempts:
        with pytest.raises(StateConflictError) as excinfo:
            exchange.swaps.apply_action(actor, swap.id, action)
        assert excinfo.value.extra["current_status"] == final_status.value

    assert exchange.swaps.get_swap(owner, swap.id).status is final_status
    after = exchange.wardrobe_store.get_item(item.id)
    assert (after.status, after.owner_id, after.swap_count) == (before.status, before.owner_id, before.swap_count)
    assert len(after.history) == len(before.history)


@pytest.mark.parametrize("final_status", [SwapStatus.DECLINED, SwapStatus.COMPLETED, SwapStatus.CANCELED])
def test_messages_allowed_after_swap_closes(exchange, make_user, final_status) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    swap = _closed_swap(exchange, owner, requester, _create_item(exchange, owner), final_status)

    exchange.swaps.post_message(requester, swap.id, MessageCreate(content="Thanks anyway"))
    exchange.swaps.post_message(owner, swap.id, MessageCreate(content="Any time"))
    contents = [m.content for m in exchange.swaps.list_messages(owner, swap.id)]
    assert contents == ["Thanks anyway", "Any time"]


def test_concurrent_completes_transfer_once(exchange, make_user) -> None:
    owner = make_user("owner")
    requester = make_user("requester")
    item = _create_item(exchange, owner)
    swap = _request_swap(exchange, requester, item)
    exchange.swaps.apply_action(owner, swap.id, "accept")

    barrier = threading.Barrier(2)
    outcomes: list = []
    lock = threading.Lock()

    def complete(actor) -> None:
        barrier.wait()
        try:
            result = exchange.swaps.apply_action(actor, swap.id, "complete")
        except StateConflictError as exc:
            result = exc
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=complete, args=(actor,)) for actor in (owner, requester)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    winners = [o for o in outcomes if not isinstance(o, StateConflictError)]
    assert len(winners) == 1 and len(outcomes) == 2
    assert winners[0].status is SwapStatus.COMPLETED
    stored = exchange.wardrobe_store.get_item(item.id)
    assert stored.owner_id == requester.id
    assert stored.swap_count == 1
    assert [entry.type for entry in stored.history].count(HistoryType.SWAP) == 1
