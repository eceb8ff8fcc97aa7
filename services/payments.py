"""Buyer-side payment intents and sale settlement."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict

from exchange_app.logging_config import get_logger, log_event
from logic.access import resolve_authorized_entity
from logic.commission import sale_breakdown
from logic.errors import ValidationFailure
from logic.pseudonym import actor_pseudonym
from logic.validation import PaymentConfirm, PaymentIntentCreate
from models.user import User
from models.wardrobe_item import HistoryType, ItemHistoryEntry, ItemStatus, WardrobeItem
from services.wardrobe import can_view_item
from tools.creator_store import SQLiteCreatorStore
from tools.database import utcnow
from tools.payment_provider import PaymentProvider
from tools.wardrobe_store import SQLiteWardrobeStore

LOGGER = get_logger(__name__)


def intent_idempotency_key(buyer_id: str, item_id: str) -> str:
    digest = hashlib.sha256(f"{buyer_id}:{item_id}".encode("utf-8")).hexdigest()
    return f"pi-{digest[:32]}"


class PaymentService:
    def __init__(
        self,
        wardrobe_store: SQLiteWardrobeStore,
        creator_store: SQLiteCreatorStore,
        payment_provider: PaymentProvider,
        *,
        platform_commission_rate: float,
        pseudonym_secret: str,
        currency: str = "usd",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.wardrobe_store = wardrobe_store
        self.creator_store = creator_store
        self.payment_provider = payment_provider
        self.platform_commission_rate = platform_commission_rate
        self.pseudonym_secret = pseudonym_secret
        self.currency = currency
        self.clock = clock

    def _item_for_sale(self, user: User, item_id: str) -> WardrobeItem:
        item = resolve_authorized_entity(
            self.wardrobe_store.get_item(item_id),
            can_view=lambda found: can_view_item(found, user.id),
        ).unwrap("Item")
        if not item.available_for_sale or not item.sale_price_cents or item.status is not ItemStatus.AVAILABLE:
            raise ValidationFailure("Item is not for sale")
        if item.owner_id == user.id:
            raise ValidationFailure("Cannot buy your own item")
        return item

    def create_intent(self, user: User, payload: PaymentIntentCreate) -> Dict[str, Any]:
        item = self._item_for_sale(user, payload.item_id)
        seller = self.creator_store.get_by_user(item.owner_id)
        if seller is None or not seller.stripe_account_id:
            raise ValidationFailure("Seller has not set up payment processing")

        breakdown = sale_breakdown(item.sale_price_cents, self.platform_commission_rate, seller.commission_rate)
        intent = self.payment_provider.create_payment_intent(
            amount_cents=breakdown.price_cents,
            currency=self.currency,
            destination_account_id=seller.stripe_account_id,
            application_fee_cents=breakdown.total_fee_cents,
            idempotency_key=intent_idempotency_key(user.id, item.id),
            metadata={"item_id": item.id, "buyer_id": user.id, "seller_id": item.owner_id},
        )
        log_event(
            LOGGER,
            logging.INFO,
            "payment_intent_created",
            item_id=item.id,
            buyer_id=user.id,
            amount_cents=breakdown.price_cents,
            application_fee_cents=breakdown.total_fee_cents,
        )
        return {
            "client_secret": intent.client_secret,
            "payment_intent_id": intent.id,
            "amount_cents": breakdown.price_cents,
            "platform_fee_cents": breakdown.platform_fee_cents,
            "creator_fee_cents": breakdown.creator_fee_cents,
            "seller_receives_cents": breakdown.seller_receives_cents,
        }

    def confirm_sale(self, user: User, payload: PaymentConfirm) -> WardrobeItem:
        """Mark the item SOLD once its payment intent has succeeded."""

        item = self._item_for_sale(user, payload.item_id)
        intent = self.payment_provider.retrieve_payment_intent(payload.payment_intent_id)
        if intent.metadata.get("item_id") != item.id or intent.metadata.get("buyer_id") != user.id:
            raise ValidationFailure("Payment does not match this purchase")
        if intent.status != "succeeded":
            raise ValidationFailure("Payment has not succeeded")

        entry = ItemHistoryEntry(
            id=uuid.uuid4().hex,
            item_id=item.id,
            type=HistoryType.SALE,
            actor_ref=actor_pseudonym(user.id, self.pseudonym_secret),
            created_at=self.clock(),
            notes="Sold through storefront",
            amount_cents=intent.amount_cents,
        )
        self.wardrobe_store.record_sale(item.id, item.owner_id, entry)
        seller = self.creator_store.get_by_user(item.owner_id)
        if seller is not None:
            self.creator_store.increment_total_sales(seller.id)
        log_event(LOGGER, logging.INFO, "sale_recorded", item_id=item.id, amount_cents=intent.amount_cents)
        return self.wardrobe_store.get_item(item.id)


__all__ = ["PaymentService", "intent_idempotency_key"]
