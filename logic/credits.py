"""Monthly AI credit accounting.

Credits reset lazily: the stored counter is only rewritten when the next
credit is consumed in a new calendar month. Reads never mutate anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Tuple

from logic.limits import limits_for


@dataclass(frozen=True)
class CreditStatus:
    has_credits: bool
    remaining: int
    limit: int


def is_new_period(period_start: Optional[datetime], now: datetime) -> bool:
    """True when ``now`` falls in a different calendar month than ``period_start``."""

    if period_start is None:
        return True
    return (period_start.year, period_start.month) != (now.year, now.month)


def credit_status(
    tier: object,
    credits_used: int,
    period_start: Optional[datetime],
    now: datetime,
) -> CreditStatus:
    limit = limits_for(tier).ai_credits_per_month
    effective_used = 0 if is_new_period(period_start, now) else max(0, credits_used)
    remaining = max(0, limit - effective_used)
    return CreditStatus(has_credits=remaining > 0, remaining=remaining, limit=limit)


def consume_credit(
    credits_used: int,
    period_start: Optional[datetime],
    now: datetime,
) -> Tuple[int, datetime]:
    """Return the ``(credits_used, period_start)`` pair to persist after one use."""

    if period_start is None or is_new_period(period_start, now):
        return 1, now
    return credits_used + 1, period_start


__all__ = ["CreditStatus", "credit_status", "consume_credit", "is_new_period"]
