"""Shared fixtures: an isolated exchange container over a temporary database."""

from __future__ import annotations

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from exchange_app.app import ExchangeApp
from exchange_app.config import ExchangeConfig
from models.tiers import MembershipTier
from models.user import SubscriptionStatus
from tools.identity_provider import DevIdentityProvider, Identity
from tools.payment_provider import MockPaymentProvider
from tools.vision_provider import MockVisionProvider


class FrozenClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now += timedelta(**delta)


@pytest.fixture()
def clock() -> FrozenClock:
    # A Wednesday, mid month.
    return FrozenClock(datetime(2024, 5, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture()
def exchange(tmp_path: Path, clock: FrozenClock) -> ExchangeApp:
    config = ExchangeConfig(
        database_path=str(tmp_path / "exchange.db"),
        environment="development",
        history_pseudonym_secret="test-secret",
    )
    return ExchangeApp(
        config,
        identity_provider=DevIdentityProvider(),
        payment_provider=MockPaymentProvider(),
        vision_provider=MockVisionProvider(),
        clock=clock,
    )


@pytest.fixture()
def make_user(exchange: ExchangeApp):
    def _make(external_id: str, tier: MembershipTier = MembershipTier.BASIC):
        return exchange.users.resolve(
            Identity(
                external_id=external_id,
                display_name=external_id.title(),
                membership_tier=tier,
                subscription_status=SubscriptionStatus.ACTIVE,
            )
        )

    return _make
