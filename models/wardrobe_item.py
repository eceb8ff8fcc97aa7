"""Wardrobe item data model and helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Optional


class ClothingCategory(str, Enum):
    TOP = "TOP"
    BOTTOM = "BOTTOM"
    DRESS = "DRESS"
    OUTERWEAR = "OUTERWEAR"
    SHOES = "SHOES"
    ACCESSORY = "ACCESSORY"
    BAG = "BAG"
    OTHER = "OTHER"


class ItemCondition(str, Enum):
    NEW_WITH_TAGS = "NEW_WITH_TAGS"
    LIKE_NEW = "LIKE_NEW"
    GOOD = "GOOD"
    FAIR = "FAIR"
    WORN = "WORN"


class ItemStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    ON_LOAN = "ON_LOAN"
    SOLD = "SOLD"
    DELETED = "DELETED"


class HistoryType(str, Enum):
    UPLOAD = "UPLOAD"
    SWAP = "SWAP"
    SALE = "SALE"


def _ensure_list(value: Any) -> List[Any]:
    """Coerce a scalar or iterable into a list."""

    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]


def _clean_strings(values: Iterable[Any]) -> List[str]:
    cleaned = []
    seen = set()
    for value in values:
        text = str(value).strip()
        if text and text.lower() not in seen:
            cleaned.append(text)
            seen.add(text.lower())
    return cleaned


@dataclass
class ItemImage:
    url: str
    is_primary: bool = False
    position: int = 0


@dataclass
class ItemHistoryEntry:
    """Append-only provenance record for an item.

    ``actor_ref`` is a keyed one-way pseudonym of the member involved, never
    the raw user id.
    """

    id: str
    item_id: str
    type: HistoryType
    actor_ref: str
    created_at: datetime
    notes: Optional[str] = None
    amount_cents: Optional[int] = None


@dataclass
class WardrobeItem:
    """Represents a garment listed by a member."""

    id: str
    owner_id: str
    original_uploader_id: str
    title: str
    category: ClothingCategory
    size: str
    condition: ItemCondition
    created_at: datetime
    description: Optional[str] = None
    subcategory: Optional[str] = None
    brand: Optional[str] = None
    colors: List[str] = field(default_factory=list)
    pattern: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    estimated_value_cents: Optional[int] = None
    available_for_swap: bool = True
    available_for_sale: bool = False
    sale_price_cents: Optional[int] = None
    weight_oz: Optional[float] = None
    status: ItemStatus = ItemStatus.AVAILABLE
    swap_count: int = 0
    images: List[ItemImage] = field(default_factory=list)
    history: List[ItemHistoryEntry] = field(default_factory=list)
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.category = ClothingCategory(str(getattr(self.category, "value", self.category)).upper())
        self.condition = ItemCondition(str(getattr(self.condition, "value", self.condition)).upper())
        self.status = ItemStatus(str(getattr(self.status, "value", self.status)).upper())
        self.colors = _clean_strings(_ensure_list(self.colors))
        self.tags = _clean_strings(_ensure_list(self.tags))

    @property
    def primary_image(self) -> Optional[ItemImage]:
        for image in self.images:
            if image.is_primary:
                return image
        return self.images[0] if self.images else None

    def matches_search(self, needle: str) -> bool:
        """Case-insensitive substring match over title, description and brand."""

        needle = needle.strip().lower()
        if not needle:
            return True
        haystacks = [self.title, self.description or "", self.brand or ""]
        return any(needle in text.lower() for text in haystacks)


__all__ = [
    "ClothingCategory",
    "ItemCondition",
    "ItemStatus",
    "HistoryType",
    "ItemImage",
    "ItemHistoryEntry",
    "WardrobeItem",
]
