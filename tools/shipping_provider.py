"""Shipping label and tracking providers."""

from __future__ import annotations

import secrets
import string
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Dict, List

from logic.errors import ValidationFailure
from logic.shipping_rates import estimate_rates, find_rate
from models.shipment import ShipmentStatus, ShippingLabel, ShippingRate, TrackingEvent
from models.user import ShippingAddress
from tools.database import utcnow

TRACKING_PREFIXES = {"USPS": "9400", "UPS": "1Z", "FedEx": "7712"}
_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_tracking_number(carrier: str) -> str:
    prefix = TRACKING_PREFIXES.get(carrier, "TRACK")
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(13))
    return f"{prefix}{suffix}"


class ShippingProvider(ABC):
    @abstractmethod
    def get_rates(
        self, from_address: ShippingAddress, to_address: ShippingAddress, weight_oz: float
    ) -> List[ShippingRate]:
        """Quote every available service for a parcel."""

    @abstractmethod
    def create_label(
        self,
        rate_id: str,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        weight_oz: float,
        idempotency_key: str,
    ) -> ShippingLabel:
        """Purchase a label for the quoted service."""

    @abstractmethod
    def track(self, tracking_number: str) -> List[TrackingEvent]:
        """Carrier scan events, oldest first."""


class MockShippingProvider(ShippingProvider):
    """Offline carrier built on the local rate estimator."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self.clock = clock
        self._lock = threading.Lock()
        self._labels: Dict[str, ShippingLabel] = {}

    def get_rates(
        self, from_address: ShippingAddress, to_address: ShippingAddress, weight_oz: float
    ) -> List[ShippingRate]:
        return estimate_rates(from_address, to_address, weight_oz)

    def create_label(
        self,
        rate_id: str,
        from_address: ShippingAddress,
        to_address: ShippingAddress,
        weight_oz: float,
        idempotency_key: str,
    ) -> ShippingLabel:
        rate = find_rate(rate_id)
        if rate is None:
            raise ValidationFailure(f"Unknown shipping rate: {rate_id}")
        with self._lock:
            if idempotency_key in self._labels:
                return self._labels[idempotency_key]
            tracking_number = generate_tracking_number(rate.carrier)
            label = ShippingLabel(
                label_url=f"https://example.com/labels/{tracking_number}.pdf",
                tracking_number=tracking_number,
                carrier=rate.carrier,
                service=rate.service,
                estimated_days=rate.estimated_days,
            )
            self._labels[idempotency_key] = label
            return label

    def track(self, tracking_number: str) -> List[TrackingEvent]:
        now = self.clock()
        return [
            TrackingEvent(
                timestamp=now - timedelta(days=3),
                status=ShipmentStatus.LABEL_CREATED,
                location="Origin Facility",
                description="Shipping label created",
            ),
            TrackingEvent(
                timestamp=now - timedelta(days=2),
                status=ShipmentStatus.IN_TRANSIT,
                location="Distribution Center",
                description="Package in transit",
            ),
            TrackingEvent(
                timestamp=now - timedelta(days=1),
                status=ShipmentStatus.OUT_FOR_DELIVERY,
                location="Local Facility",
                description="Out for delivery",
            ),
        ]


__all__ = [
    "TRACKING_PREFIXES",
    "generate_tracking_number",
    "ShippingProvider",
    "MockShippingProvider",
]
