"""Creator storefront and promotion models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class DiscountType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


@dataclass
class Promotion:
    id: str
    creator_id: str
    title: str
    code: str
    discount_type: DiscountType
    discount_value: float
    created_at: datetime
    description: Optional[str] = None
    min_purchase_cents: Optional[int] = None
    max_uses: Optional[int] = None
    uses_count: int = 0
    expires_at: Optional[datetime] = None
    is_active: bool = True

    def __post_init__(self) -> None:
        self.code = self.code.strip().upper()

    def is_redeemable(self, now: datetime) -> bool:
        if not self.is_active:
            return False
        if self.expires_at is not None and self.expires_at < now:
            return False
        if self.max_uses is not None and self.uses_count >= self.max_uses:
            return False
        return True


@dataclass
class CreatorProfile:
    """Storefront settings and payout account for a selling member."""

    id: str
    user_id: str
    store_name: str
    created_at: datetime
    bio: Optional[str] = None
    branding_colors: Dict[str, str] = field(default_factory=dict)
    banner_image_url: Optional[str] = None
    social_links: Dict[str, str] = field(default_factory=dict)
    stripe_account_id: Optional[str] = None
    commission_rate: float = 10.0
    total_sales: int = 0
    is_verified: bool = False
    promotions: List[Promotion] = field(default_factory=list)

    def storefront_view(self) -> Dict[str, object]:
        """Public storefront fields; the payout account stays private."""

        return {
            "id": self.id,
            "store_name": self.store_name,
            "bio": self.bio,
            "branding_colors": self.branding_colors,
            "banner_image_url": self.banner_image_url,
            "social_links": self.social_links,
            "total_sales": self.total_sales,
            "is_verified": self.is_verified,
        }


__all__ = ["DiscountType", "Promotion", "CreatorProfile"]
