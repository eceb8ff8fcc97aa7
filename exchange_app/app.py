"""Exchange app bootstrap."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Mapping

from exchange_app.config import ExchangeConfig
from exchange_app.logging_config import configure_logging, get_logger, log_event
from models.user import User
from services.ai import AIService
from services.collections import CollectionService
from services.creator import CreatorService
from services.payments import PaymentService
from services.shipping import ShippingService
from services.swaps import SwapService
from services.users import UserService
from services.wardrobe import WardrobeService
from tools.collection_store import SQLiteCollectionStore
from tools.creator_store import SQLiteCreatorStore
from tools.database import Database, utcnow
from tools.identity_provider import DevIdentityProvider, IdentityProvider, WhopIdentityProvider
from tools.payment_provider import MockPaymentProvider, PaymentProvider, StripePaymentProvider
from tools.shipment_store import SQLiteShipmentStore
from tools.shipping_provider import MockShippingProvider, ShippingProvider
from tools.swap_store import SQLiteSwapStore
from tools.user_store import SQLiteUserStore
from tools.vision_provider import GeminiVisionProvider, VisionProvider
from tools.wardrobe_store import SQLiteWardrobeStore

LOGGER = get_logger(__name__)


class ExchangeApp:
    """Wires storage, external providers and domain services together."""

    def __init__(
        self,
        config: ExchangeConfig | None = None,
        *,
        identity_provider: IdentityProvider | None = None,
        payment_provider: PaymentProvider | None = None,
        vision_provider: VisionProvider | None = None,
        shipping_provider: ShippingProvider | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config or ExchangeConfig.from_env()
        configure_logging(self.config.log_level)
        self.clock = clock

        self.database = Database(self.config.database_path)
        self.user_store = SQLiteUserStore(self.database)
        self.wardrobe_store = SQLiteWardrobeStore(self.database)
        self.collection_store = SQLiteCollectionStore(self.database)
        self.swap_store = SQLiteSwapStore(self.database)
        self.creator_store = SQLiteCreatorStore(self.database)
        self.shipment_store = SQLiteShipmentStore(self.database)

        self.identity_provider = identity_provider or self._build_identity_provider()
        self.payment_provider = payment_provider or self._build_payment_provider()
        self.vision_provider = vision_provider or GeminiVisionProvider(model=self.config.gemini_model)
        self.shipping_provider = shipping_provider or MockShippingProvider(clock=clock)

        secret = self.config.history_pseudonym_secret
        rate = self.config.platform_commission_rate
        self.users = UserService(
            self.user_store,
            self.wardrobe_store,
            self.collection_store,
            self.swap_store,
            self.creator_store,
            clock=clock,
        )
        self.wardrobe = WardrobeService(self.wardrobe_store, secret, clock=clock)
        self.collections = CollectionService(self.collection_store, self.wardrobe_store, clock=clock)
        self.swaps = SwapService(self.swap_store, self.wardrobe_store, secret, clock=clock)
        self.ai = AIService(self.user_store, self.wardrobe_store, self.vision_provider, clock=clock)
        self.creators = CreatorService(
            self.creator_store,
            self.user_store,
            self.wardrobe_store,
            self.payment_provider,
            app_base_url=self.config.app_base_url,
            platform_commission_rate=rate,
            currency=self.config.currency,
            clock=clock,
        )
        self.payments = PaymentService(
            self.wardrobe_store,
            self.creator_store,
            self.payment_provider,
            platform_commission_rate=rate,
            pseudonym_secret=secret,
            currency=self.config.currency,
            clock=clock,
        )
        self.shipping = ShippingService(
            self.wardrobe_store,
            self.shipment_store,
            self.shipping_provider,
            default_weight_oz=self.config.default_item_weight_oz,
            clock=clock,
        )
        log_event(
            LOGGER,
            logging.INFO,
            "exchange_app_ready",
            environment=self.config.environment or "production",
            identity_provider=type(self.identity_provider).__name__,
            payment_provider=type(self.payment_provider).__name__,
        )

    def _build_identity_provider(self) -> IdentityProvider:
        if self.config.is_development:
            return DevIdentityProvider()
        return WhopIdentityProvider(api_key=self.config.whop_api_key, api_base=self.config.whop_api_base)

    def _build_payment_provider(self) -> PaymentProvider:
        if self.config.stripe_secret_key:
            return StripePaymentProvider(
                self.config.stripe_secret_key, api_base=self.config.stripe_api_base
            )
        if not self.config.is_development:
            raise RuntimeError("STRIPE_SECRET_KEY must be set outside development")
        return MockPaymentProvider()

    def authenticate(self, headers: Mapping[str, str]) -> User:
        """Verify the caller and return their local record, creating it on first sight."""

        identity = self.identity_provider.authenticate(headers)
        return self.users.resolve(identity)


__all__ = ["ExchangeApp"]
