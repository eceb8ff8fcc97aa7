"""Tier limit checks shared by every quota-gated endpoint."""

from __future__ import annotations

from models.tiers import (
    NO_FEATURES,
    TIER_LIMITS,
    UNLIMITED,
    MembershipTier,
    TierLimits,
    parse_tier,
)

# Resource name -> TierLimits attribute.
RESOURCE_FIELDS = {
    "wardrobe_items": "max_wardrobe_items",
    "collections": "max_collections",
    "active_swaps": "max_active_swaps",
    "promotion_codes": "promotion_code_cap",
    "featured_listings": "featured_listing_cap",
    "ai_credits": "ai_credits_per_month",
}

FEATURE_LABELS = {
    "max_wardrobe_items": "more wardrobe items",
    "max_collections": "more collections",
    "max_active_swaps": "more active swaps",
    "can_sell_items": "selling items",
    "can_create_storefront": "a creator storefront",
    "ai_credits_per_month": "more AI credits",
    "promotion_code_cap": "promotion codes",
    "featured_listing_cap": "featured listings",
    "priority_support": "priority support",
    "custom_branding": "custom branding",
    "analytics_access": "analytics",
}


def limits_for(tier: object) -> TierLimits:
    """Return the limits for ``tier``; unknown tiers get no features."""

    parsed = parse_tier(tier)
    if parsed is None:
        return NO_FEATURES
    return TIER_LIMITS[parsed]


def limit_value(tier: object, resource: str) -> int:
    try:
        field_name = RESOURCE_FIELDS[resource]
    except KeyError as exc:
        raise ValueError(f"Unknown limited resource: {resource}") from exc
    return getattr(limits_for(tier), field_name)


def has_reached_limit(tier: object, resource: str, current_count: int) -> bool:
    """True once ``current_count`` meets the tier's limit for ``resource``."""

    limit = limit_value(tier, resource)
    if limit == UNLIMITED:
        return False
    return current_count >= limit


def can_perform_action(tier: object, feature: str) -> bool:
    """Check a boolean feature flag or a numeric allowance on the tier."""

    value = getattr(limits_for(tier), feature, None)
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return value > 0 or value == UNLIMITED


def upgrade_message(tier: object, feature: str) -> str:
    parsed = parse_tier(tier)
    if parsed is MembershipTier.PRO:
        return "You have access to all features!"
    target = "Pro" if parsed is MembershipTier.STANDARD else "Standard"
    label = FEATURE_LABELS.get(feature, feature.replace("_", " "))
    return f"Upgrade to {target} to unlock {label}"


__all__ = [
    "RESOURCE_FIELDS",
    "limits_for",
    "limit_value",
    "has_reached_limit",
    "can_perform_action",
    "upgrade_message",
]
