"""Swap request orchestration: validation, lifecycle transitions and messaging."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from exchange_app.logging_config import get_logger, log_event
from logic.access import resolve_authorized_entity
from logic.errors import StateConflictError, ValidationFailure
from logic.limits import has_reached_limit
from logic.pseudonym import actor_pseudonym
from logic.swap_lifecycle import SwapAction, parse_action, plan_transition
from logic.validation import MessageCreate, SwapCreate
from models.swap import SwapMessage, SwapRequest, SwapStatus
from models.user import User
from models.wardrobe_item import HistoryType, ItemHistoryEntry, ItemStatus
from services.wardrobe import can_view_item
from tools.database import utcnow
from tools.swap_store import SQLiteSwapStore
from tools.wardrobe_store import SQLiteWardrobeStore

LOGGER = get_logger(__name__)

SWAP_DIRECTIONS = ("sent", "received", "all")


class SwapService:
    def __init__(
        self,
        swap_store: SQLiteSwapStore,
        wardrobe_store: SQLiteWardrobeStore,
        pseudonym_secret: str,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.swap_store = swap_store
        self.wardrobe_store = wardrobe_store
        self.pseudonym_secret = pseudonym_secret
        self.clock = clock

    def create_swap(self, user: User, payload: SwapCreate) -> SwapRequest:
        item = self.wardrobe_store.get_item(payload.item_id)
        item = resolve_authorized_entity(
            item, can_view=lambda found: can_view_item(found, user.id)
        ).unwrap("Item")
        if item.owner_id == user.id:
            raise ValidationFailure("Cannot request a swap for your own item")
        if not item.available_for_swap:
            raise ValidationFailure("Item is not available for swap")
        if item.status is not ItemStatus.AVAILABLE:
            raise StateConflictError("Item is not available for swap")

        tier = user.membership_tier
        now = self.clock()
        swap = SwapRequest(
            id=uuid.uuid4().hex,
            requester_id=user.id,
            owner_id=item.owner_id,
            item_id=item.id,
            delivery_method=payload.delivery_method,
            created_at=now,
            updated_at=now,
            scheduled_pickup=payload.scheduled_pickup,
            scheduled_return=payload.scheduled_return,
        )
        message = (payload.message or "").strip() or None
        try:
            created = self.swap_store.create_swap(
                swap,
                first_message=message,
                limit_reached=lambda count: has_reached_limit(tier, "active_swaps", count),
            )
        except StateConflictError:
            log_event(LOGGER, logging.WARNING, "swap_create_conflict", user_id=user.id, item_id=item.id)
            raise
        log_event(
            LOGGER,
            logging.INFO,
            "swap_created",
            swap_id=created.id,
            requester_id=user.id,
            owner_id=item.owner_id,
            item_id=item.id,
        )
        return created

    def list_swaps(self, user: User, direction: str = "all", status: Optional[str] = None) -> List[SwapRequest]:
        if direction not in SWAP_DIRECTIONS:
            raise ValidationFailure(f"type must be one of {', '.join(SWAP_DIRECTIONS)}")
        parsed_status = None
        if status:
            try:
                parsed_status = SwapStatus(status.upper())
            except ValueError as exc:
                raise ValidationFailure(f"Unknown swap status: {status}") from exc
        return self.swap_store.list_swaps(user.id, direction, parsed_status)

    def _participant_swap(self, user: User, swap_id: str, include_messages: bool = False) -> SwapRequest:
        swap = self.swap_store.get_swap(swap_id, include_messages=include_messages)
        return resolve_authorized_entity(
            swap, can_view=lambda found: found.is_participant(user.id)
        ).unwrap("Swap")

    def get_swap(self, user: User, swap_id: str) -> SwapRequest:
        return self._participant_swap(user, swap_id, include_messages=True)

    def _history_for(self, swap: SwapRequest, now: datetime) -> ItemHistoryEntry:
        return ItemHistoryEntry(
            id=uuid.uuid4().hex,
            item_id=swap.item_id,
            type=HistoryType.SWAP,
            actor_ref=actor_pseudonym(swap.owner_id, self.pseudonym_secret),
            created_at=now,
            notes="Ownership transferred through a completed swap",
        )

    def apply_action(self, user: User, swap_id: str, action: str | SwapAction) -> SwapRequest:
        """Run one lifecycle action; a lost race surfaces as a state conflict."""

        swap = self._participant_swap(user, swap_id)
        parsed = action if isinstance(action, SwapAction) else parse_action(action)
        plan = plan_transition(
            swap.status,
            parsed,
            actor_is_owner=user.id == swap.owner_id,
            actor_is_requester=user.id == swap.requester_id,
        )
        now = self.clock()
        history = self._history_for(swap, now) if plan.transfers_ownership else None
        try:
            updated = self.swap_store.apply_transition(swap, plan, now, history)
        except StateConflictError:
            log_event(
                LOGGER,
                logging.WARNING,
                "swap_transition_conflict",
                swap_id=swap.id,
                action=parsed.value,
                expected_status=plan.from_status.value,
            )
            raise
        log_event(
            LOGGER,
            logging.INFO,
            "swap_transitioned",
            swap_id=swap.id,
            action=parsed.value,
            from_status=plan.from_status.value,
            to_status=plan.to_status.value,
            user_id=user.id,
        )
        return updated

    def list_messages(self, user: User, swap_id: str) -> List[SwapMessage]:
        swap = self._participant_swap(user, swap_id)
        return self.swap_store.list_messages(swap.id)

    def post_message(self, user: User, swap_id: str, payload: MessageCreate) -> SwapMessage:
        swap = self._participant_swap(user, swap_id)
        content = payload.content.strip()
        if not content:
            raise ValidationFailure("Message content is required")
        message = self.swap_store.add_message(swap.id, user.id, content, self.clock())
        log_event(LOGGER, logging.INFO, "swap_message_posted", swap_id=swap.id, sender_id=user.id)
        return message


__all__ = ["SwapService", "SWAP_DIRECTIONS"]
