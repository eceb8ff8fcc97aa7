"""Rate quotes, label purchase and shipment tracking."""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List

from exchange_app.logging_config import get_logger, log_event
from logic.access import resolve_authorized_entity
from logic.errors import ValidationFailure
from logic.shipping_rates import estimated_delivery
from logic.validation import ShippingLabelInput, ShippingRatesInput
from models.shipment import Shipment, ShipmentStatus, ShippingRate
from models.user import ShippingAddress, User
from services.wardrobe import can_view_item
from tools.database import utcnow
from tools.shipment_store import SQLiteShipmentStore
from tools.shipping_provider import ShippingProvider
from tools.wardrobe_store import SQLiteWardrobeStore

LOGGER = get_logger(__name__)


class ShippingService:
    def __init__(
        self,
        wardrobe_store: SQLiteWardrobeStore,
        shipment_store: SQLiteShipmentStore,
        shipping_provider: ShippingProvider,
        default_weight_oz: float = 8.0,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.wardrobe_store = wardrobe_store
        self.shipment_store = shipment_store
        self.shipping_provider = shipping_provider
        self.default_weight_oz = default_weight_oz
        self.clock = clock

    def rates(self, payload: ShippingRatesInput) -> List[ShippingRate]:
        return self.shipping_provider.get_rates(
            ShippingAddress(**payload.from_address.model_dump()),
            ShippingAddress(**payload.to_address.model_dump()),
            payload.weight_oz or self.default_weight_oz,
        )

    def create_label(self, user: User, payload: ShippingLabelInput) -> Shipment:
        item = resolve_authorized_entity(
            self.wardrobe_store.get_item(payload.item_id),
            can_view=lambda found: can_view_item(found, user.id),
            can_act=lambda found: found.owner_id == user.id,
        ).unwrap("Item")
        if payload.from_address is not None:
            from_address = ShippingAddress(**payload.from_address.model_dump())
        elif user.shipping_address is not None:
            from_address = user.shipping_address
        else:
            raise ValidationFailure("A shipping address is required")
        to_address = ShippingAddress(**payload.to_address.model_dump())

        destination = f"{to_address.postal_code}:{to_address.line1}".encode("utf-8")
        idempotency_key = (
            f"label-{item.id}-{payload.rate_id}-{hashlib.sha256(destination).hexdigest()[:16]}"
        )
        label = self.shipping_provider.create_label(
            payload.rate_id,
            from_address,
            to_address,
            item.weight_oz or self.default_weight_oz,
            idempotency_key,
        )
        existing = self.shipment_store.get_by_tracking_number(label.tracking_number)
        if existing is not None:
            return existing

        now = self.clock()
        shipment = Shipment(
            id=uuid.uuid4().hex,
            item_id=item.id,
            sender_id=user.id,
            from_address=from_address,
            to_address=to_address,
            created_at=now,
            status=ShipmentStatus.LABEL_CREATED,
            tracking_number=label.tracking_number,
            carrier=label.carrier,
            service=label.service,
            label_url=label.label_url,
            estimated_delivery=estimated_delivery(label.estimated_days, now),
        )
        self.shipment_store.create_shipment(shipment)
        log_event(
            LOGGER,
            logging.INFO,
            "shipping_label_created",
            item_id=item.id,
            carrier=label.carrier,
            shipment_id=shipment.id,
        )
        return shipment

    def track(self, user: User, tracking_number: str) -> Dict[str, Any]:
        shipment = self.shipment_store.get_by_tracking_number(tracking_number)

        def can_view(found: Shipment) -> bool:
            if found.sender_id == user.id:
                return True
            item = self.wardrobe_store.get_item(found.item_id)
            return item is not None and item.owner_id == user.id

        shipment = resolve_authorized_entity(shipment, can_view=can_view).unwrap("Shipment")
        events = self.shipping_provider.track(tracking_number)
        if events and events[-1].status is not shipment.status:
            shipment.status = events[-1].status
            self.shipment_store.update_status(shipment.id, shipment.status)
        shipment.events = events
        return {"shipment": shipment, "events": events}


__all__ = ["ShippingService"]
