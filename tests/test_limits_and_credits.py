"""Tier limit policy and monthly AI credit accounting."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.credits import consume_credit, credit_status, is_new_period
from logic.limits import (
    RESOURCE_FIELDS,
    can_perform_action,
    has_reached_limit,
    limit_value,
    limits_for,
    upgrade_message,
)
from models.tiers import NO_FEATURES, UNLIMITED, MembershipTier, parse_tier

MAY = datetime(2024, 5, 15, tzinfo=timezone.utc)
APRIL = datetime(2024, 4, 30, tzinfo=timezone.utc)


def test_basic_tier_limits() -> None:
    assert limit_value(MembershipTier.BASIC, "wardrobe_items") == 50
    assert has_reached_limit(MembershipTier.BASIC, "wardrobe_items", 50)
    assert not has_reached_limit(MembershipTier.BASIC, "wardrobe_items", 49)
    assert has_reached_limit("basic", "collections", 3)


@pytest.mark.parametrize("resource", ["wardrobe_items", "collections", "active_swaps"])
def test_unlimited_pro_resources_never_trip(resource: str) -> None:
    assert limit_value(MembershipTier.PRO, resource) == UNLIMITED
    assert not has_reached_limit(MembershipTier.PRO, resource, 10**9)


def test_unknown_tier_gets_no_features() -> None:
    assert parse_tier("PLATINUM") is None
    assert limits_for("PLATINUM") is NO_FEATURES
    assert has_reached_limit("PLATINUM", "wardrobe_items", 0)
    assert not can_perform_action("PLATINUM", "can_sell_items")


def test_unknown_resource_is_rejected() -> None:
    with pytest.raises(ValueError):
        limit_value(MembershipTier.PRO, "spaceships")
    assert "ai_credits" in RESOURCE_FIELDS


def test_feature_flags_and_allowances() -> None:
    assert not can_perform_action(MembershipTier.BASIC, "can_sell_items")
    assert can_perform_action(MembershipTier.STANDARD, "can_sell_items")
    assert not can_perform_action(MembershipTier.STANDARD, "can_create_storefront")
    assert can_perform_action(MembershipTier.PRO, "max_wardrobe_items")
    assert not can_perform_action(MembershipTier.BASIC, "promotion_code_cap")
    assert not can_perform_action(MembershipTier.PRO, "no_such_feature")


def test_upgrade_messages() -> None:
    assert upgrade_message(MembershipTier.BASIC, "can_sell_items") == "Upgrade to Standard to unlock selling items"
    assert upgrade_message(MembershipTier.STANDARD, "can_create_storefront") == (
        "Upgrade to Pro to unlock a creator storefront"
    )
    assert upgrade_message(MembershipTier.PRO, "anything") == "You have access to all features!"


def test_exhausted_basic_credits() -> None:
    status = credit_status(MembershipTier.BASIC, 10, MAY.replace(day=1), MAY)
    assert (status.has_credits, status.remaining, status.limit) == (False, 0, 10)


def test_month_change_zeroes_effective_usage() -> None:
    status = credit_status(MembershipTier.BASIC, 10, APRIL, MAY)
    assert status.has_credits and status.remaining == 10
    assert credit_status(MembershipTier.STANDARD, 0, None, MAY).remaining == 50


def test_credit_status_is_pure() -> None:
    first = credit_status(MembershipTier.PRO, 7, MAY, MAY)
    second = credit_status(MembershipTier.PRO, 7, MAY, MAY)
    assert first == second
    assert first.remaining == 193


def test_consume_credit_resets_in_new_period() -> None:
    assert consume_credit(4, MAY, MAY) == (5, MAY)
    assert consume_credit(9, APRIL, MAY) == (1, MAY)
    assert consume_credit(0, None, MAY) == (1, MAY)
    assert is_new_period(datetime(2023, 5, 1, tzinfo=timezone.utc), MAY)
