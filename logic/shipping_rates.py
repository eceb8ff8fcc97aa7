"""Mock carrier rate estimation from a state adjacency and region heuristic."""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, FrozenSet, List

from models.shipment import ShippingRate
from models.user import ShippingAddress

RATE_CATALOG: List[ShippingRate] = [
    ShippingRate(id="usps_first_class", carrier="USPS", service="First Class", estimated_days=3, price_cents=499),
    ShippingRate(id="usps_priority", carrier="USPS", service="Priority Mail", estimated_days=2, price_cents=899),
    ShippingRate(id="ups_ground", carrier="UPS", service="Ground", estimated_days=5, price_cents=1299),
    ShippingRate(id="fedex_2day", carrier="FedEx", service="2Day", estimated_days=2, price_cents=1599),
]

ADJACENT_STATES: Dict[str, FrozenSet[str]] = {
    "CA": frozenset({"OR", "NV", "AZ"}),
    "NY": frozenset({"PA", "NJ", "CT", "MA", "VT"}),
    "TX": frozenset({"OK", "AR", "LA", "NM"}),
}

REGIONS: Dict[str, FrozenSet[str]] = {
    "west": frozenset({"CA", "OR", "WA", "NV", "AZ", "UT", "ID", "MT", "WY", "CO", "NM"}),
    "midwest": frozenset({"IL", "IN", "MI", "OH", "WI", "MN", "IA", "MO", "ND", "SD", "NE", "KS"}),
    "south": frozenset(
        {"TX", "OK", "AR", "LA", "MS", "AL", "TN", "KY", "WV", "VA", "NC", "SC", "GA", "FL"}
    ),
    "northeast": frozenset({"NY", "PA", "NJ", "CT", "MA", "RI", "VT", "NH", "ME", "MD", "DE"}),
}

SAME_STATE = 1.0
ADJACENT = 1.2
SAME_REGION = 1.5
CROSS_COUNTRY = 2.0


def _region_of(state: str) -> str | None:
    for name, members in REGIONS.items():
        if state in members:
            return name
    return None


def distance_multiplier(from_state: str, to_state: str) -> float:
    """Same state, then adjacency, then shared region; first match wins."""

    origin = from_state.strip().upper()
    destination = to_state.strip().upper()
    if origin == destination:
        return SAME_STATE
    if destination in ADJACENT_STATES.get(origin, frozenset()):
        return ADJACENT
    region = _region_of(origin)
    if region is not None and region == _region_of(destination):
        return SAME_REGION
    return CROSS_COUNTRY


def weight_multiplier(weight_oz: float) -> int:
    """Charge per started pound, never less than one."""

    return max(1, math.ceil(weight_oz / 16))


def _scaled_price(base_cents: int, multiplier: float) -> int:
    exact = Decimal(base_cents) * Decimal(str(multiplier))
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def estimate_rates(
    from_address: ShippingAddress,
    to_address: ShippingAddress,
    weight_oz: float,
) -> List[ShippingRate]:
    if weight_oz <= 0:
        raise ValueError("weight_oz must be positive")
    multiplier = distance_multiplier(from_address.state, to_address.state) * weight_multiplier(weight_oz)
    return [replace(rate, price_cents=_scaled_price(rate.price_cents, multiplier)) for rate in RATE_CATALOG]


def find_rate(rate_id: str) -> ShippingRate | None:
    for rate in RATE_CATALOG:
        if rate.id == rate_id:
            return rate
    return None


def estimated_delivery(estimated_days: int, now: datetime) -> datetime:
    """Add calendar days, then push a weekend landing day to Monday."""

    landing = now + timedelta(days=estimated_days)
    # Saturday is 5, Sunday is 6.
    if landing.weekday() >= 5:
        landing += timedelta(days=7 - landing.weekday())
    return landing


__all__ = [
    "RATE_CATALOG",
    "ADJACENT_STATES",
    "REGIONS",
    "distance_multiplier",
    "weight_multiplier",
    "estimate_rates",
    "find_rate",
    "estimated_delivery",
]
