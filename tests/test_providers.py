"""External provider adapters exercised against fake transports."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from logic.errors import AuthenticationError, UpstreamError
from models.tiers import MembershipTier
from tools import identity_provider, vision_provider
from tools.identity_provider import DevIdentityProvider, WhopIdentityProvider
from tools.payment_provider import StripePaymentProvider, _form_encode
from tools.vision_provider import GeminiVisionProvider, parse_analysis, parse_recommendations


class _FakeResponse:
    def __init__(self, status_code: int, payload: Any) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self) -> Any:
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class _FakeSession:
    def __init__(self, responses: List[_FakeResponse]) -> None:
        self.responses = responses
        self.calls: List[Dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self.responses.pop(0)


class _FakeModel:
    def __init__(self, text: str) -> None:
        self.text = text
        self.contents: List[Any] = []

    def generate_content(self, contents: Any) -> "_FakeModel":
        self.contents.append(contents)
        return self


def test_parse_analysis_reads_embedded_json() -> None:
    text = 'Sure! ```json\n{"category": "dress", "colors": ["red"], "pattern": "floral", "style": "boho"}\n```'
    analysis = parse_analysis(text)
    assert analysis.category == "dress"
    assert analysis.colors == ["red"]
    assert analysis.suggestions == ""


def test_parse_analysis_falls_back_to_raw_text() -> None:
    analysis = parse_analysis("Looks like a nice blue shirt")
    assert analysis.category == "unknown"
    assert analysis.suggestions == "Looks like a nice blue shirt"
    assert parse_analysis('{"colors": "not a list"}').category == "unknown"


def test_parse_recommendations_keeps_numbered_lines() -> None:
    text = "Here you go:\n1. Shoes: Loafers (smart)\n2.  Tops: Linen shirt\nEnjoy!"
    assert parse_recommendations(text) == ["Shoes: Loafers (smart)", "Tops: Linen shirt"]


def test_gemini_provider_uses_injected_model() -> None:
    model = _FakeModel('{"category": "jacket", "colors": ["olive"], "pattern": "solid", "style": "utility"}')
    provider = GeminiVisionProvider(model_factory=lambda name: model, image_fetcher=lambda url: b"img")
    analysis = provider.analyze_image("https://example.com/j.jpg", "AIzaKey")
    assert analysis.category == "jacket"
    assert model.contents[0][0] == {"mime_type": "image/jpeg", "data": b"img"}


def test_gemini_provider_wraps_failures() -> None:
    class _Broken:
        def generate_content(self, contents: Any) -> Any:
            raise RuntimeError("quota")

    provider = GeminiVisionProvider(model_factory=lambda name: _Broken())
    with pytest.raises(UpstreamError):
        provider.recommend_items({}, [], "AIzaKey")


def test_gemini_generates_with_each_callers_key(monkeypatch) -> None:
    configured: List[str] = []
    seen: List[str] = []

    class _KeyAwareModel:
        text = "1. Shoes: Loafers"

        def generate_content(self, contents: Any) -> "_KeyAwareModel":
            seen.append(configured[-1])
            return self

    monkeypatch.setattr(vision_provider.genai, "configure", lambda api_key: configured.append(api_key))
    provider = GeminiVisionProvider(model_factory=lambda name: _KeyAwareModel())
    provider.recommend_items({}, [], "AIzaFirst")
    provider.recommend_items({}, [], "AIzaSecond")
    assert seen == ["AIzaFirst", "AIzaSecond"]


def test_form_encoding_flattens_nested_values() -> None:
    encoded = _form_encode({"amount": 100, "transfer_data": {"destination": "acct_1"}, "email": None, "ok": True})
    assert encoded == {"amount": "100", "transfer_data[destination]": "acct_1", "ok": "true"}


def test_stripe_payment_intent_sends_idempotency_key() -> None:
    session = _FakeSession(
        [
            _FakeResponse(
                200,
                {
                    "id": "pi_1",
                    "amount": 2000,
                    "currency": "usd",
                    "status": "requires_payment_method",
                    "client_secret": "pi_1_secret",
                    "application_fee_amount": 400,
                    "metadata": {"item_id": "item-1"},
                },
            )
        ]
    )
    provider = StripePaymentProvider("sk_test_123", session=session)
    intent = provider.create_payment_intent(
        amount_cents=2000,
        currency="usd",
        destination_account_id="acct_9",
        application_fee_cents=400,
        idempotency_key="pi-abc",
        metadata={"item_id": "item-1"},
    )
    assert intent.application_fee_cents == 400
    assert intent.metadata == {"item_id": "item-1"}
    call = session.calls[0]
    assert call["headers"]["Idempotency-Key"] == "pi-abc"
    assert call["data"]["transfer_data[destination]"] == "acct_9"
    assert call["auth"] == ("sk_test_123", "")


def test_stripe_errors_become_upstream_errors() -> None:
    provider = StripePaymentProvider("sk_test_123", session=_FakeSession([_FakeResponse(402, {})]))
    with pytest.raises(UpstreamError):
        provider.retrieve_account("acct_1")
    provider = StripePaymentProvider("sk_test_123", session=_FakeSession([_FakeResponse(200, {"nope": 1})]))
    with pytest.raises(UpstreamError):
        provider.retrieve_account("acct_1")


def test_stripe_payout_is_scoped_to_connected_account() -> None:
    session = _FakeSession([_FakeResponse(200, {"id": "po_1", "amount": 500, "status": "pending"})])
    payout = StripePaymentProvider("sk_test_123", session=session).create_payout("acct_7", 500, "usd", "po-key")
    assert payout.id == "po_1"
    assert session.calls[0]["headers"] == {"Idempotency-Key": "po-key", "Stripe-Account": "acct_7"}


def test_whop_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: Dict[str, Any] = {}

    def fake_get(url: str, headers: Dict[str, str], timeout: float) -> _FakeResponse:
        seen.update(url=url, headers=headers)
        return _FakeResponse(200, {"id": "user_42", "username": "closetfan", "email": "fan@example.com"})

    monkeypatch.setattr(identity_provider.requests, "get", fake_get)
    identity = WhopIdentityProvider(api_key="whop-key").authenticate({"x-whop-user-token": "tok"})
    assert identity.external_id == "user_42"
    assert identity.display_name == "closetfan"
    assert seen["url"] == "https://api.whop.com/api/v5/me"
    assert seen["headers"]["Authorization"] == "Bearer tok"


def test_whop_rejects_bad_tokens(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(identity_provider.requests, "get", lambda *a, **k: _FakeResponse(401, {}))
    with pytest.raises(AuthenticationError):
        WhopIdentityProvider().authenticate({"x-whop-user-token": "expired"})
    with pytest.raises(AuthenticationError):
        WhopIdentityProvider().authenticate({})


def test_dev_identity_defaults() -> None:
    provider = DevIdentityProvider()
    assert provider.authenticate({}).membership_tier is MembershipTier.PRO
    other = provider.authenticate({"x-dev-user-id": "bob", "x-dev-user-tier": "standard"})
    assert (other.external_id, other.membership_tier) == ("bob", MembershipTier.STANDARD)
    assert provider.authenticate({"x-dev-user-id": "eve"}).membership_tier is MembershipTier.BASIC
