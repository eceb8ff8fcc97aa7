"""Configuration, structured logging and access resolution."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from exchange_app.config import ExchangeConfig
from exchange_app.logging_config import JsonFormatter, log_event, redact_for_log, request_context
from logic.access import Visibility, resolve_authorized_entity
from logic.errors import ForbiddenError, NotFoundError
from logic.pseudonym import actor_pseudonym


def test_config_reads_yaml_and_env_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    env_dir = tmp_path / "environments"
    env_dir.mkdir()
    (env_dir / "staging.yaml").write_text(
        "# staging\ndatabase_path: /tmp/staging.db\ncurrency: 'EUR'\nplatform_commission_rate: 12.5\n"
    )
    monkeypatch.setenv("APP_ENV", "staging")
    monkeypatch.setenv("EXCHANGE_CONFIG_DIR", str(env_dir))
    monkeypatch.setenv("GEMINI_MODEL", "gemini-test")
    monkeypatch.delenv("APP_CONFIG_PATH", raising=False)

    config = ExchangeConfig.from_env()
    assert config.environment == "staging"
    assert config.database_path == "/tmp/staging.db"
    assert config.currency == "eur"
    assert config.platform_commission_rate == 12.5
    assert config.gemini_model == "gemini-test"
    assert not config.is_development


def test_development_flag() -> None:
    assert ExchangeConfig(environment="development").is_development
    assert ExchangeConfig(environment="local").is_development
    assert not ExchangeConfig().is_development


def test_redaction_scrubs_contact_details_and_secrets() -> None:
    scrubbed = redact_for_log(
        {
            "email": "a@b.com",
            "note": "reach me at someone@example.com",
            "nested": [{"gemini_api_key": "AIzaSecret", "item_id": "item-1"}],
            "content": "private swap message",
        }
    )
    assert scrubbed["email"] == "[redacted]"
    assert scrubbed["note"] == "reach me at [redacted-email]"
    assert scrubbed["nested"] == [{"gemini_api_key": "[redacted]", "item_id": "item-1"}]
    assert scrubbed["content"] == "[redacted]"


def test_redaction_masks_keys_inside_free_text() -> None:
    scrubbed = redact_for_log(
        {
            "error": "rejected key AIzaSyD-abc123456 for sk_test_51Hxyz",
            "to_address": {"line1": "1 Main St"},
            "whop_token": "tok",
            "swap_id": "s1",
        }
    )
    assert scrubbed["error"] == "rejected key [redacted-key] for [redacted-key]"
    assert scrubbed["to_address"] == "[redacted]"
    assert scrubbed["whop_token"] == "[redacted]"
    assert scrubbed["swap_id"] == "s1"


def test_json_formatter_carries_correlation_id(caplog: pytest.LogCaptureFixture) -> None:
    logger = logging.getLogger("tests.logging")
    with caplog.at_level(logging.INFO, logger="tests.logging"):
        with request_context("corr-1", method="POST", route="/api/swaps"):
            log_event(logger, logging.INFO, "swap_created", swap_id="s1", email="x@y.com")
    record = caplog.records[-1]
    payload = json.loads(JsonFormatter().format(record))
    assert payload["event"] == "swap_created"
    assert payload["correlation_id"] == "corr-1"
    assert payload["swap_id"] == "s1"
    assert payload["email"] == "[redacted]"
    assert (payload["method"], payload["route"]) == ("POST", "/api/swaps")


def test_resolution_hides_missing_and_private_entities() -> None:
    entity = {"owner": "alice"}
    assert resolve_authorized_entity(None, can_view=lambda e: True).visibility is Visibility.HIDDEN
    hidden = resolve_authorized_entity(entity, can_view=lambda e: False)
    with pytest.raises(NotFoundError):
        hidden.unwrap("Item")
    forbidden = resolve_authorized_entity(entity, can_view=lambda e: True, can_act=lambda e: False)
    with pytest.raises(ForbiddenError):
        forbidden.unwrap("Item")
    assert resolve_authorized_entity(entity, can_view=lambda e: True).unwrap() is entity


def test_pseudonyms_are_stable_and_keyed() -> None:
    first = actor_pseudonym("user-1", "secret")
    assert first == actor_pseudonym("user-1", "secret")
    assert first != actor_pseudonym("user-1", "other-secret")
    assert first.startswith("anon_") and len(first) == 29
    assert "user-1" not in first
