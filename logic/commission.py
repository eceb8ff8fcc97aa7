"""Commission arithmetic on integer minor currency units."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal


@dataclass(frozen=True)
class SaleBreakdown:
    price_cents: int
    platform_fee_cents: int
    creator_fee_cents: int

    @property
    def total_fee_cents(self) -> int:
        return self.platform_fee_cents + self.creator_fee_cents

    @property
    def seller_receives_cents(self) -> int:
        return self.price_cents - self.total_fee_cents


def commission(amount_cents: int, rate_percent: float) -> int:
    """Return ``amount_cents * rate_percent / 100`` rounded half up."""

    if amount_cents < 0:
        raise ValueError("amount_cents must be non-negative")
    if not 0 <= rate_percent <= 100:
        raise ValueError("rate_percent must be between 0 and 100")
    exact = Decimal(int(amount_cents)) * Decimal(str(rate_percent)) / Decimal(100)
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def sale_breakdown(price_cents: int, platform_rate: float, creator_rate: float) -> SaleBreakdown:
    """Both commissions are taken from the gross price, never compounded."""

    return SaleBreakdown(
        price_cents=price_cents,
        platform_fee_cents=commission(price_cents, platform_rate),
        creator_fee_cents=commission(price_cents, creator_rate),
    )


_CURRENCY_SYMBOLS = {"usd": "$", "eur": "€", "gbp": "£"}


def format_currency(amount_cents: int, currency: str = "usd") -> str:
    """Render cents for display, e.g. ``1234 -> "$12.34"``."""

    code = currency.lower()
    sign = "-" if amount_cents < 0 else ""
    major, minor = divmod(abs(int(amount_cents)), 100)
    symbol = _CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{major:,}.{minor:02d} {code.upper()}"
    return f"{sign}{symbol}{major:,}.{minor:02d}"


__all__ = ["SaleBreakdown", "commission", "sale_breakdown", "format_currency"]
