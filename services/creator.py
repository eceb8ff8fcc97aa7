"""Creator storefronts, promotions, connected accounts, earnings and payouts."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from exchange_app.logging_config import get_logger, log_event
from logic.commission import format_currency, sale_breakdown
from logic.errors import ForbiddenError, NotFoundError, QuotaExceededError, ValidationFailure
from logic.limits import can_perform_action, has_reached_limit, limits_for, upgrade_message
from logic.validation import CreatorProfileInput, PayoutCreate, PromotionCreate
from models.creator import CreatorProfile, Promotion
from models.user import User
from tools.creator_store import SQLiteCreatorStore
from tools.database import utcnow
from tools.payment_provider import PaymentProvider, Payout
from tools.user_store import SQLiteUserStore
from tools.wardrobe_store import SQLiteWardrobeStore

LOGGER = get_logger(__name__)
PAYOUT_HISTORY_LIMIT = 20
RECENT_SALES_LIMIT = 10


class CreatorService:
    def __init__(
        self,
        creator_store: SQLiteCreatorStore,
        user_store: SQLiteUserStore,
        wardrobe_store: SQLiteWardrobeStore,
        payment_provider: PaymentProvider,
        *,
        app_base_url: str,
        platform_commission_rate: float,
        currency: str = "usd",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.creator_store = creator_store
        self.user_store = user_store
        self.wardrobe_store = wardrobe_store
        self.payment_provider = payment_provider
        self.app_base_url = app_base_url.rstrip("/")
        self.platform_commission_rate = platform_commission_rate
        self.currency = currency
        self.clock = clock

    def get_profile(self, user: User) -> CreatorProfile:
        profile = self.creator_store.get_by_user(user.id)
        if profile is None:
            raise NotFoundError("Creator profile not found")
        return profile

    def save_profile(self, user: User, payload: CreatorProfileInput) -> CreatorProfile:
        if not can_perform_action(user.membership_tier, "can_sell_items"):
            raise ForbiddenError(upgrade_message(user.membership_tier, "can_sell_items"), upgrade_required=True)
        profile = CreatorProfile(
            id=uuid.uuid4().hex,
            user_id=user.id,
            created_at=self.clock(),
            **payload.model_dump(),
        )
        saved = self.creator_store.upsert_profile(profile)
        log_event(LOGGER, logging.INFO, "creator_profile_saved", user_id=user.id, creator_id=saved.id)
        return saved

    def list_promotions(self, user: User) -> List[Promotion]:
        return self.creator_store.list_promotions(self.get_profile(user).id)

    def create_promotion(self, user: User, payload: PromotionCreate) -> Promotion:
        profile = self.get_profile(user)
        now = self.clock()
        active = self.creator_store.count_active_promotions(profile.id, now)
        if has_reached_limit(user.membership_tier, "promotion_codes", active):
            raise QuotaExceededError(
                upgrade_message(user.membership_tier, "promotion_code_cap"),
                limit=limits_for(user.membership_tier).promotion_code_cap,
            )
        data = payload.model_dump()
        expires_at = data.pop("expires_at")
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        promotion = Promotion(
            id=uuid.uuid4().hex,
            creator_id=profile.id,
            created_at=now,
            expires_at=expires_at.astimezone(timezone.utc) if expires_at else None,
            **data,
        )
        created = self.creator_store.create_promotion(promotion)
        log_event(LOGGER, logging.INFO, "promotion_created", creator_id=profile.id, code=created.code)
        return created

    def _profile_for_payments(self, user: User) -> CreatorProfile:
        profile = self.creator_store.get_by_user(user.id)
        if profile is None:
            raise ValidationFailure("Creator profile not found. Create one first.")
        return profile

    def start_onboarding(self, user: User) -> Dict[str, str]:
        """Create the connected account on first use and return an onboarding link."""

        profile = self._profile_for_payments(user)
        account_id = profile.stripe_account_id
        if not account_id:
            account_id = self.payment_provider.create_connected_account(user.email)
            self.creator_store.set_stripe_account(profile.id, account_id)
            log_event(LOGGER, logging.INFO, "connected_account_created", creator_id=profile.id)
        url = self.payment_provider.create_account_link(
            account_id,
            return_url=f"{self.app_base_url}/creator/stripe/return",
            refresh_url=f"{self.app_base_url}/creator/stripe/refresh",
        )
        return {"account_id": account_id, "url": url}

    def account_status(self, user: User) -> Dict[str, Any]:
        profile = self._profile_for_payments(user)
        if not profile.stripe_account_id:
            return {"status": "not_connected"}
        status = self.payment_provider.retrieve_account(profile.stripe_account_id)
        return {
            "status": "connected",
            "account_id": status.account_id,
            "details_submitted": status.details_submitted,
            "charges_enabled": status.charges_enabled,
            "payouts_enabled": status.payouts_enabled,
        }

    def earnings(self, user: User) -> Dict[str, Any]:
        profile = self.get_profile(user)
        sales = self.wardrobe_store.list_sales_for_owner(user.id)
        totals = {"gross": 0, "platform_fee": 0, "creator_commission": 0, "net": 0}
        for sale in sales:
            breakdown = sale_breakdown(
                int(sale["amount_cents"]), self.platform_commission_rate, profile.commission_rate
            )
            totals["gross"] += breakdown.price_cents
            totals["platform_fee"] += breakdown.platform_fee_cents
            totals["creator_commission"] += breakdown.creator_fee_cents
            totals["net"] += breakdown.seller_receives_cents
        return {
            "earnings": {
                **{f"total_{key}_cents": value for key, value in totals.items()},
                "sales_count": len(sales),
                "formatted": {
                    f"total_{key}": format_currency(value, self.currency) for key, value in totals.items()
                },
            },
            "recent_sales": sales[:RECENT_SALES_LIMIT],
        }

    def _connected_account(self, user: User) -> str:
        profile = self.get_profile(user)
        if not profile.stripe_account_id:
            raise ValidationFailure("Stripe account not connected")
        return profile.stripe_account_id

    def create_payout(self, user: User, payload: PayoutCreate, idempotency_key: Optional[str] = None) -> Payout:
        account_id = self._connected_account(user)
        payout = self.payment_provider.create_payout(
            account_id,
            payload.amount_cents,
            self.currency,
            idempotency_key or f"payout-{uuid.uuid4().hex}",
        )
        log_event(LOGGER, logging.INFO, "payout_requested", user_id=user.id, amount_cents=payload.amount_cents)
        return payout

    def list_payouts(self, user: User) -> List[Payout]:
        return self.payment_provider.list_payouts(self._connected_account(user), limit=PAYOUT_HISTORY_LIMIT)

    def storefront(self, creator_id: str) -> Dict[str, Any]:
        """Public store page; only tiers with a storefront are listed."""

        profile = self.creator_store.get_profile(creator_id)
        owner = self.user_store.get_user(profile.user_id) if profile else None
        if profile is None or owner is None or not can_perform_action(
            owner.membership_tier, "can_create_storefront"
        ):
            raise NotFoundError("Creator not found")
        return {
            "creator": {**profile.storefront_view(), "user": owner.public_view()},
            "items": self.wardrobe_store.list_store_items(owner.id),
            "promotions": self.creator_store.list_promotions(profile.id, now=self.clock()),
        }


__all__ = ["CreatorService", "PAYOUT_HISTORY_LIMIT"]
