"""Rate estimation, delivery dates and the offline carrier."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.errors import ValidationFailure
from logic.shipping_rates import (
    RATE_CATALOG,
    distance_multiplier,
    estimate_rates,
    estimated_delivery,
    find_rate,
    weight_multiplier,
)
from models.shipment import ShipmentStatus
from models.user import ShippingAddress
from tools.shipping_provider import MockShippingProvider, generate_tracking_number


def _address(state: str) -> ShippingAddress:
    return ShippingAddress(name="Sam", line1="1 Main St", city="Town", state=state, postal_code="00001")


def test_same_state_twenty_ounces_doubles_every_rate() -> None:
    rates = estimate_rates(_address("CA"), _address("ca"), 20)
    assert [rate.price_cents for rate in rates] == [base.price_cents * 2 for base in RATE_CATALOG]
    assert [rate.id for rate in rates] == [base.id for base in RATE_CATALOG]


@pytest.mark.parametrize(
    "origin,destination,expected",
    [("CA", "CA", 1.0), ("CA", "OR", 1.2), ("CA", "WA", 1.5), ("CA", "NY", 2.0), ("ZZ", "YY", 2.0)],
)
def test_distance_multiplier(origin: str, destination: str, expected: float) -> None:
    assert distance_multiplier(origin, destination) == expected


def test_weight_multiplier_rounds_up_per_pound() -> None:
    assert weight_multiplier(1) == 1
    assert weight_multiplier(16) == 1
    assert weight_multiplier(16.1) == 2
    assert weight_multiplier(48) == 3


def test_non_positive_weight_rejected() -> None:
    with pytest.raises(ValueError):
        estimate_rates(_address("CA"), _address("CA"), 0)


def test_weekend_delivery_moves_to_monday() -> None:
    thursday = datetime(2024, 5, 16, 9, tzinfo=timezone.utc)
    # Two days lands on Saturday, three on Sunday.
    assert estimated_delivery(2, thursday).weekday() == 0
    assert estimated_delivery(3, thursday).date() == datetime(2024, 5, 20).date()
    assert estimated_delivery(1, thursday).weekday() == 4


def test_tracking_numbers_use_carrier_prefix() -> None:
    assert generate_tracking_number("UPS").startswith("1Z")
    usps = generate_tracking_number("USPS")
    assert usps.startswith("9400") and len(usps) == 17
    assert generate_tracking_number("Courier").startswith("TRACK")


def test_mock_carrier_labels_are_idempotent() -> None:
    provider = MockShippingProvider()
    first = provider.create_label("usps_priority", _address("NY"), _address("NJ"), 8, "key-1")
    again = provider.create_label("usps_priority", _address("NY"), _address("NJ"), 8, "key-1")
    other = provider.create_label("usps_priority", _address("NY"), _address("NJ"), 8, "key-2")
    assert first == again
    assert other.tracking_number != first.tracking_number
    assert first.label_url.endswith(f"{first.tracking_number}.pdf")
    assert find_rate("usps_priority").estimated_days == first.estimated_days


def test_mock_carrier_rejects_unknown_rate() -> None:
    with pytest.raises(ValidationFailure):
        MockShippingProvider().create_label("pigeon", _address("NY"), _address("NJ"), 8, "key")


def test_mock_tracking_events_are_oldest_first() -> None:
    now = datetime(2024, 5, 15, tzinfo=timezone.utc)
    events = MockShippingProvider(clock=lambda: now).track("9400ABC")
    assert [event.status for event in events] == [
        ShipmentStatus.LABEL_CREATED,
        ShipmentStatus.IN_TRANSIT,
        ShipmentStatus.OUT_FOR_DELIVERY,
    ]
    assert events[0].timestamp < events[-1].timestamp < now
