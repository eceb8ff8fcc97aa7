"""Swap request state machine.

The table below is the only place transitions are defined. Persistence applies
a planned transition as a compare-and-swap on ``from_status`` so a stale plan
can never overwrite a newer status.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Tuple

from logic.errors import ForbiddenError, StateConflictError, ValidationFailure
from models.swap import SwapStatus
from models.wardrobe_item import ItemStatus


class SwapAction(str, Enum):
    ACCEPT = "accept"
    DECLINE = "decline"
    COMPLETE = "complete"
    CANCEL = "cancel"


OWNER = "owner"
REQUESTER = "requester"
EITHER = frozenset({OWNER, REQUESTER})


@dataclass(frozen=True)
class TransitionRule:
    to_status: SwapStatus
    roles: FrozenSet[str]
    item_status: ItemStatus
    transfers_ownership: bool = False


@dataclass(frozen=True)
class PlannedTransition:
    action: SwapAction
    from_status: SwapStatus
    to_status: SwapStatus
    item_status: ItemStatus
    transfers_ownership: bool


TRANSITIONS: Dict[Tuple[SwapStatus, SwapAction], TransitionRule] = {
    (SwapStatus.PENDING, SwapAction.ACCEPT): TransitionRule(
        SwapStatus.ACCEPTED, frozenset({OWNER}), ItemStatus.ON_LOAN
    ),
    (SwapStatus.PENDING, SwapAction.DECLINE): TransitionRule(
        SwapStatus.DECLINED, frozenset({OWNER}), ItemStatus.AVAILABLE
    ),
    (SwapStatus.PENDING, SwapAction.CANCEL): TransitionRule(
        SwapStatus.CANCELED, EITHER, ItemStatus.AVAILABLE
    ),
    (SwapStatus.ACCEPTED, SwapAction.COMPLETE): TransitionRule(
        SwapStatus.COMPLETED, EITHER, ItemStatus.AVAILABLE, transfers_ownership=True
    ),
    (SwapStatus.ACCEPTED, SwapAction.CANCEL): TransitionRule(
        SwapStatus.CANCELED, EITHER, ItemStatus.AVAILABLE
    ),
}

# Only the owner may ever accept or decline, whatever the current status.
ACTION_ROLES: Dict[SwapAction, FrozenSet[str]] = {
    SwapAction.ACCEPT: frozenset({OWNER}),
    SwapAction.DECLINE: frozenset({OWNER}),
    SwapAction.COMPLETE: EITHER,
    SwapAction.CANCEL: EITHER,
}


def parse_action(value: object) -> SwapAction:
    try:
        return SwapAction(str(value).strip().lower())
    except ValueError as exc:
        raise ValidationFailure(f"Unknown swap action: {value}") from exc


def legal_actions(status: SwapStatus) -> FrozenSet[SwapAction]:
    return frozenset(action for (source, action) in TRANSITIONS if source == status)


def plan_transition(
    status: SwapStatus,
    action: SwapAction,
    *,
    actor_is_owner: bool,
    actor_is_requester: bool,
) -> PlannedTransition:
    """Validate role then state and describe the transition to apply.

    Raises:
        ForbiddenError: the actor's role may not perform ``action``.
        StateConflictError: ``action`` is not legal from ``status``.
    """

    roles = set()
    if actor_is_owner:
        roles.add(OWNER)
    if actor_is_requester:
        roles.add(REQUESTER)
    if not roles & ACTION_ROLES[action]:
        raise ForbiddenError(f"Only the item owner can {action.value} this swap")

    rule = TRANSITIONS.get((SwapStatus(status), action))
    if rule is None:
        raise StateConflictError(
            f"Cannot {action.value} a swap that is {SwapStatus(status).value}",
            current_status=SwapStatus(status).value,
        )
    return PlannedTransition(
        action=action,
        from_status=SwapStatus(status),
        to_status=rule.to_status,
        item_status=rule.item_status,
        transfers_ownership=rule.transfers_ownership,
    )


__all__ = [
    "SwapAction",
    "TransitionRule",
    "PlannedTransition",
    "TRANSITIONS",
    "parse_action",
    "legal_actions",
    "plan_transition",
]
