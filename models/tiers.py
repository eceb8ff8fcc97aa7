"""Membership tiers and the feature limits attached to each of them.

The table is the single source of truth for quota checks across wardrobe,
collection, swap, promotion and AI endpoints. ``UNLIMITED`` marks a numeric
limit that never trips.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict

UNLIMITED = -1


class MembershipTier(str, Enum):
    BASIC = "BASIC"
    STANDARD = "STANDARD"
    PRO = "PRO"


@dataclass(frozen=True)
class TierLimits:
    """Numeric and boolean feature limits for one membership tier."""

    max_wardrobe_items: int
    max_collections: int
    max_active_swaps: int
    can_sell_items: bool
    can_create_storefront: bool
    ai_credits_per_month: int
    promotion_code_cap: int
    featured_listing_cap: int
    priority_support: bool = False
    custom_branding: bool = False
    analytics_access: bool = False


TIER_LIMITS: Dict[MembershipTier, TierLimits] = {
    MembershipTier.BASIC: TierLimits(
        max_wardrobe_items=50,
        max_collections=3,
        max_active_swaps=5,
        can_sell_items=False,
        can_create_storefront=False,
        ai_credits_per_month=10,
        promotion_code_cap=0,
        featured_listing_cap=0,
    ),
    MembershipTier.STANDARD: TierLimits(
        max_wardrobe_items=200,
        max_collections=10,
        max_active_swaps=15,
        can_sell_items=True,
        can_create_storefront=False,
        ai_credits_per_month=50,
        promotion_code_cap=3,
        featured_listing_cap=2,
        analytics_access=True,
    ),
    MembershipTier.PRO: TierLimits(
        max_wardrobe_items=UNLIMITED,
        max_collections=UNLIMITED,
        max_active_swaps=UNLIMITED,
        can_sell_items=True,
        can_create_storefront=True,
        ai_credits_per_month=200,
        promotion_code_cap=10,
        featured_listing_cap=10,
        priority_support=True,
        custom_branding=True,
        analytics_access=True,
    ),
}

# Unknown tiers get nothing.
NO_FEATURES = TierLimits(
    max_wardrobe_items=0,
    max_collections=0,
    max_active_swaps=0,
    can_sell_items=False,
    can_create_storefront=False,
    ai_credits_per_month=0,
    promotion_code_cap=0,
    featured_listing_cap=0,
)

# Monthly and annual prices in cents.
TIER_PRICING: Dict[MembershipTier, Dict[str, int]] = {
    MembershipTier.BASIC: {"monthly": 999, "annual": 9900},
    MembershipTier.STANDARD: {"monthly": 2499, "annual": 24900},
    MembershipTier.PRO: {"monthly": 4999, "annual": 49900},
}


def parse_tier(value: object) -> MembershipTier | None:
    """Return the tier for a loose string, or ``None`` when unrecognised."""

    if isinstance(value, MembershipTier):
        return value
    try:
        return MembershipTier(str(value).strip().upper())
    except ValueError:
        return None


__all__ = [
    "UNLIMITED",
    "MembershipTier",
    "TierLimits",
    "TIER_LIMITS",
    "NO_FEATURES",
    "TIER_PRICING",
    "parse_tier",
]
