"""Account, limits, AI key and consent operations for the current member."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import datetime
from typing import Any, Callable, Dict

from exchange_app.logging_config import get_logger, log_event
from logic.credits import credit_status
from logic.limits import has_reached_limit, limits_for
from logic.validation import AIConsentInput, GeminiKeyInput, ShippingAddressInput, UserProfileUpdate
from models.user import ShippingAddress, User
from tools.collection_store import SQLiteCollectionStore
from tools.creator_store import SQLiteCreatorStore
from tools.database import utcnow
from tools.identity_provider import Identity
from tools.swap_store import SQLiteSwapStore
from tools.user_store import SQLiteUserStore
from tools.wardrobe_store import SQLiteWardrobeStore

LOGGER = get_logger(__name__)


class UserService:
    def __init__(
        self,
        user_store: SQLiteUserStore,
        wardrobe_store: SQLiteWardrobeStore,
        collection_store: SQLiteCollectionStore,
        swap_store: SQLiteSwapStore,
        creator_store: SQLiteCreatorStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.user_store = user_store
        self.wardrobe_store = wardrobe_store
        self.collection_store = collection_store
        self.swap_store = swap_store
        self.creator_store = creator_store
        self.clock = clock

    def resolve(self, identity: Identity) -> User:
        """Map a verified identity to its member record, creating it lazily."""

        user = self.user_store.get_or_create(
            identity.external_id,
            display_name=identity.display_name,
            now=self.clock(),
            email=identity.email,
            avatar_url=identity.avatar_url,
            membership_tier=identity.membership_tier,
            subscription_status=identity.subscription_status,
        )
        return user

    def update_profile(self, user: User, update: UserProfileUpdate) -> User:
        fields = update.model_dump(exclude_unset=True)
        log_event(LOGGER, logging.INFO, "user_profile_updated", user_id=user.id, fields=sorted(fields))
        return self.user_store.update_user(user.id, fields)

    def set_shipping_address(self, user: User, address: ShippingAddressInput) -> User:
        return self.user_store.set_shipping_address(user.id, ShippingAddress(**address.model_dump()))

    def usage(self, user: User) -> Dict[str, Any]:
        tier = user.membership_tier
        now = self.clock()
        creator = self.creator_store.get_by_user(user.id)
        counts = {
            "wardrobe_items": self.wardrobe_store.count_items_for_owner(user.id),
            "collections": self.collection_store.count_for_user(user.id),
            "active_swaps": self.swap_store.count_active_sent(user.id),
            "promotion_codes": self.creator_store.count_active_promotions(creator.id, now) if creator else 0,
        }
        credits = credit_status(tier, user.ai_credits_used, user.credits_period_start, now)
        return {
            "tier": tier.value,
            "features": asdict(limits_for(tier)),
            "usage": counts,
            "limits": {
                f"{resource}_reached": has_reached_limit(tier, resource, count)
                for resource, count in counts.items()
            },
            "ai_credits": asdict(credits),
        }

    def gemini_key_status(self, user: User) -> Dict[str, bool]:
        return {"has_key": bool(user.gemini_api_key)}

    def set_gemini_key(self, user: User, payload: GeminiKeyInput) -> Dict[str, bool]:
        self.user_store.set_gemini_key(user.id, payload.api_key)
        log_event(LOGGER, logging.INFO, "gemini_key_saved", user_id=user.id)
        return {"has_key": True}

    def delete_gemini_key(self, user: User) -> Dict[str, bool]:
        self.user_store.set_gemini_key(user.id, None)
        log_event(LOGGER, logging.INFO, "gemini_key_removed", user_id=user.id)
        return {"has_key": False}

    def ai_consent(self, user: User) -> Dict[str, Any]:
        return {"consent": user.ai_photo_consent, "consent_date": user.ai_consent_date}

    def set_ai_consent(self, user: User, payload: AIConsentInput) -> Dict[str, Any]:
        updated = self.user_store.set_ai_consent(user.id, payload.consent, self.clock())
        return self.ai_consent(updated)


__all__ = ["UserService"]
