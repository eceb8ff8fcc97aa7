"""Model package exports."""

from models.collection import Collection, CollectionItem
from models.creator import CreatorProfile, DiscountType, Promotion
from models.shipment import Shipment, ShipmentStatus, ShippingLabel, ShippingRate, TrackingEvent
from models.swap import DeliveryMethod, SwapMessage, SwapRequest, SwapStatus
from models.tiers import MembershipTier, TierLimits
from models.user import ShippingAddress, SubscriptionStatus, User
from models.wardrobe_item import (
    ClothingCategory,
    HistoryType,
    ItemCondition,
    ItemHistoryEntry,
    ItemImage,
    ItemStatus,
    WardrobeItem,
)

__all__ = [
    "ClothingCategory",
    "Collection",
    "CollectionItem",
    "CreatorProfile",
    "DeliveryMethod",
    "DiscountType",
    "HistoryType",
    "ItemCondition",
    "ItemHistoryEntry",
    "ItemImage",
    "ItemStatus",
    "MembershipTier",
    "Promotion",
    "Shipment",
    "ShipmentStatus",
    "ShippingAddress",
    "ShippingLabel",
    "ShippingRate",
    "SubscriptionStatus",
    "SwapMessage",
    "SwapRequest",
    "SwapStatus",
    "TierLimits",
    "TrackingEvent",
    "User",
    "WardrobeItem",
]
