"""Shipment, rate and tracking models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from models.user import ShippingAddress


class ShipmentStatus(str, Enum):
    PENDING = "PENDING"
    LABEL_CREATED = "LABEL_CREATED"
    IN_TRANSIT = "IN_TRANSIT"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    RETURNED = "RETURNED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class ShippingRate:
    id: str
    carrier: str
    service: str
    estimated_days: int
    price_cents: int
    currency: str = "USD"


@dataclass
class TrackingEvent:
    timestamp: datetime
    status: ShipmentStatus
    location: str
    description: str


@dataclass
class ShippingLabel:
    label_url: str
    tracking_number: str
    carrier: str
    service: str
    estimated_days: int


@dataclass
class Shipment:
    id: str
    item_id: str
    sender_id: str
    from_address: ShippingAddress
    to_address: ShippingAddress
    created_at: datetime
    status: ShipmentStatus = ShipmentStatus.PENDING
    tracking_number: Optional[str] = None
    carrier: Optional[str] = None
    service: Optional[str] = None
    label_url: Optional[str] = None
    estimated_delivery: Optional[datetime] = None
    actual_delivery: Optional[datetime] = None
    events: List[TrackingEvent] = field(default_factory=list)


__all__ = ["ShipmentStatus", "ShippingRate", "TrackingEvent", "ShippingLabel", "Shipment"]
