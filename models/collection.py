"""Collection models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional


@dataclass
class CollectionItem:
    collection_id: str
    item_id: str
    order: int
    added_at: datetime


@dataclass
class Collection:
    """A member-curated, ordered set of wardrobe items."""

    id: str
    user_id: str
    name: str
    created_at: datetime
    description: Optional[str] = None
    is_public: bool = False
    tags: List[str] = field(default_factory=list)
    cover_image_url: Optional[str] = None
    items: List[CollectionItem] = field(default_factory=list)

    def is_visible_to(self, user_id: Optional[str]) -> bool:
        return self.is_public or self.user_id == user_id


__all__ = ["Collection", "CollectionItem"]
