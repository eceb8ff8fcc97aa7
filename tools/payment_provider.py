"""Payment processor abstractions and implementations."""

from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional

import requests
from pydantic import BaseModel, ValidationError

from logic.errors import UpstreamError
from tools.observability import instrument_operation

LOGGER = logging.getLogger(__name__)


class _StripeAccount(BaseModel):
    id: str
    details_submitted: bool = False
    charges_enabled: bool = False
    payouts_enabled: bool = False


class _StripeAccountLink(BaseModel):
    url: str
    expires_at: Optional[int] = None


class _StripePaymentIntent(BaseModel):
    id: str
    amount: int
    currency: str
    status: str
    client_secret: Optional[str] = None
    application_fee_amount: Optional[int] = None
    metadata: Dict[str, str] = {}


class _StripePayout(BaseModel):
    id: str
    amount: int
    currency: str = "usd"
    status: str
    arrival_date: Optional[int] = None


class _StripePayoutList(BaseModel):
    data: List[_StripePayout] = []


@dataclass
class AccountStatus:
    account_id: str
    details_submitted: bool
    charges_enabled: bool
    payouts_enabled: bool


@dataclass
class PaymentIntent:
    id: str
    amount_cents: int
    currency: str
    status: str
    client_secret: Optional[str] = None
    application_fee_cents: Optional[int] = None
    metadata: Dict[str, str] = field(default_factory=dict)


@dataclass
class Payout:
    id: str
    amount_cents: int
    currency: str
    status: str
    arrival_date: Optional[int] = None


class PaymentProvider(ABC):
    """Marketplace payment operations against connected creator accounts."""

    @abstractmethod
    def create_connected_account(self, email: Optional[str], country: str = "US") -> str:
        """Create an express connected account and return its id."""

    @abstractmethod
    def create_account_link(self, account_id: str, return_url: str, refresh_url: str) -> str:
        """Return a hosted onboarding URL for ``account_id``."""

    @abstractmethod
    def retrieve_account(self, account_id: str) -> AccountStatus:
        """Return the onboarding and capability state of an account."""

    @abstractmethod
    def create_payment_intent(
        self,
        *,
        amount_cents: int,
        currency: str,
        destination_account_id: str,
        application_fee_cents: int,
        idempotency_key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> PaymentIntent:
        """Create a destination charge with the platform fee withheld."""

    @abstractmethod
    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        """Return the current state of a payment intent."""

    @abstractmethod
    def create_payout(
        self, account_id: str, amount_cents: int, currency: str, idempotency_key: str
    ) -> Payout:
        """Pay out from a connected account's balance."""

    @abstractmethod
    def list_payouts(self, account_id: str, limit: int = 20) -> List[Payout]:
        """Most recent payouts for a connected account."""


def _form_encode(payload: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    """Flatten nested mappings into Stripe's ``a[b][c]`` form keys."""

    encoded: Dict[str, str] = {}
    for key, value in payload.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, Mapping):
            encoded.update(_form_encode(value, name))
        elif isinstance(value, bool):
            encoded[name] = "true" if value else "false"
        else:
            encoded[name] = str(value)
    return encoded


class StripePaymentProvider(PaymentProvider):
    """Stripe REST client with schema validated responses.

    Failures are not retried; writes carry an idempotency key so a caller's
    retry cannot double charge or double pay out.
    """

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com",
        timeout_seconds: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if not secret_key:
            raise ValueError("A Stripe secret key is required")
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.session = session or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        schema: type[BaseModel],
        *,
        data: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        stripe_account: Optional[str] = None,
    ) -> BaseModel:
        headers = {}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        if stripe_account:
            headers["Stripe-Account"] = stripe_account
        try:
            response = self.session.request(
                method,
                f"{self.api_base}{path}",
                auth=(self.secret_key, ""),
                data=_form_encode(data) if data else None,
                params=params,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except requests.RequestException as exc:
            LOGGER.error("Stripe request failed", extra={"path": path, "error": str(exc)})
            raise UpstreamError("Payment processor unavailable") from exc

        if not 200 <= response.status_code < 300:
            LOGGER.warning(
                "Stripe returned an error", extra={"path": path, "status_code": response.status_code}
            )
            raise UpstreamError("Payment processor rejected the request")
        try:
            return schema.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            LOGGER.error("Unexpected Stripe payload", extra={"path": path})
            raise UpstreamError("Payment processor returned an invalid response") from exc

    @instrument_operation("stripe.create_connected_account")
    def create_connected_account(self, email: Optional[str], country: str = "US") -> str:
        account = self._request(
            "POST",
            "/v1/accounts",
            _StripeAccount,
            data={
                "type": "express",
                "country": country,
                "email": email,
                "business_type": "individual",
                "capabilities": {
                    "card_payments": {"requested": True},
                    "transfers": {"requested": True},
                },
            },
        )
        return account.id

    @instrument_operation("stripe.create_account_link")
    def create_account_link(self, account_id: str, return_url: str, refresh_url: str) -> str:
        link = self._request(
            "POST",
            "/v1/account_links",
            _StripeAccountLink,
            data={
                "account": account_id,
                "refresh_url": refresh_url,
                "return_url": return_url,
                "type": "account_onboarding",
            },
        )
        return link.url

    @instrument_operation("stripe.retrieve_account")
    def retrieve_account(self, account_id: str) -> AccountStatus:
        account = self._request("GET", f"/v1/accounts/{account_id}", _StripeAccount)
        return AccountStatus(
            account_id=account.id,
            details_submitted=account.details_submitted,
            charges_enabled=account.charges_enabled,
            payouts_enabled=account.payouts_enabled,
        )

    @staticmethod
    def _to_intent(intent: _StripePaymentIntent) -> PaymentIntent:
        return PaymentIntent(
            id=intent.id,
            amount_cents=intent.amount,
            currency=intent.currency,
            status=intent.status,
            client_secret=intent.client_secret,
            application_fee_cents=intent.application_fee_amount,
            metadata=dict(intent.metadata),
        )

    @instrument_operation("stripe.create_payment_intent")
    def create_payment_intent(
        self,
        *,
        amount_cents: int,
        currency: str,
        destination_account_id: str,
        application_fee_cents: int,
        idempotency_key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> PaymentIntent:
        intent = self._request(
            "POST",
            "/v1/payment_intents",
            _StripePaymentIntent,
            data={
                "amount": amount_cents,
                "currency": currency,
                "application_fee_amount": application_fee_cents,
                "transfer_data": {"destination": destination_account_id},
                "metadata": dict(metadata or {}),
            },
            idempotency_key=idempotency_key,
        )
        return self._to_intent(intent)

    @instrument_operation("stripe.retrieve_payment_intent")
    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        intent = self._request("GET", f"/v1/payment_intents/{intent_id}", _StripePaymentIntent)
        return self._to_intent(intent)

    @instrument_operation("stripe.create_payout")
    def create_payout(
        self, account_id: str, amount_cents: int, currency: str, idempotency_key: str
    ) -> Payout:
        payout = self._request(
            "POST",
            "/v1/payouts",
            _StripePayout,
            data={"amount": amount_cents, "currency": currency},
            idempotency_key=idempotency_key,
            stripe_account=account_id,
        )
        return Payout(payout.id, payout.amount, payout.currency, payout.status, payout.arrival_date)

    @instrument_operation("stripe.list_payouts")
    def list_payouts(self, account_id: str, limit: int = 20) -> List[Payout]:
        payouts = self._request(
            "GET", "/v1/payouts", _StripePayoutList, params={"limit": limit}, stripe_account=account_id
        )
        return [Payout(p.id, p.amount, p.currency, p.status, p.arrival_date) for p in payouts.data]


class MockPaymentProvider(PaymentProvider):
    """Deterministic in-memory payment processor for local runs and tests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self.accounts: Dict[str, AccountStatus] = {}
        self.intents: Dict[str, PaymentIntent] = {}
        self.payouts: Dict[str, List[Payout]] = {}
        self._idempotent: Dict[str, Any] = {}

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}_mock_{next(self._counter)}"

    def create_connected_account(self, email: Optional[str], country: str = "US") -> str:
        with self._lock:
            account_id = self._next_id("acct")
            self.accounts[account_id] = AccountStatus(account_id, False, False, False)
            return account_id

    def create_account_link(self, account_id: str, return_url: str, refresh_url: str) -> str:
        return f"https://connect.example.com/setup/{account_id}?return_url={return_url}"

    def retrieve_account(self, account_id: str) -> AccountStatus:
        try:
            return self.accounts[account_id]
        except KeyError as exc:
            raise UpstreamError("Unknown connected account") from exc

    def complete_onboarding(self, account_id: str) -> None:
        self.accounts[account_id] = AccountStatus(account_id, True, True, True)

    def create_payment_intent(
        self,
        *,
        amount_cents: int,
        currency: str,
        destination_account_id: str,
        application_fee_cents: int,
        idempotency_key: str,
        metadata: Optional[Mapping[str, str]] = None,
    ) -> PaymentIntent:
        with self._lock:
            if idempotency_key in self._idempotent:
                return self._idempotent[idempotency_key]
            intent_id = self._next_id("pi")
            intent = PaymentIntent(
                id=intent_id,
                amount_cents=amount_cents,
                currency=currency,
                status="requires_payment_method",
                client_secret=f"{intent_id}_secret",
                application_fee_cents=application_fee_cents,
                metadata=dict(metadata or {}),
            )
            self.intents[intent_id] = intent
            self._idempotent[idempotency_key] = intent
            return intent

    def settle(self, intent_id: str) -> None:
        """Simulate the buyer completing payment."""

        with self._lock:
            self.intents[intent_id] = replace(self.intents[intent_id], status="succeeded")

    def retrieve_payment_intent(self, intent_id: str) -> PaymentIntent:
        try:
            return self.intents[intent_id]
        except KeyError as exc:
            raise UpstreamError("Unknown payment intent") from exc

    def create_payout(
        self, account_id: str, amount_cents: int, currency: str, idempotency_key: str
    ) -> Payout:
        with self._lock:
            if idempotency_key in self._idempotent:
                return self._idempotent[idempotency_key]
            payout = Payout(self._next_id("po"), amount_cents, currency, "pending", None)
            self.payouts.setdefault(account_id, []).insert(0, payout)
            self._idempotent[idempotency_key] = payout
            return payout

    def list_payouts(self, account_id: str, limit: int = 20) -> List[Payout]:
        return list(self.payouts.get(account_id, []))[:limit]


__all__ = [
    "AccountStatus",
    "PaymentIntent",
    "Payout",
    "PaymentProvider",
    "StripePaymentProvider",
    "MockPaymentProvider",
]
