"""SQLite persistence for member accounts."""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from logic.credits import consume_credit, credit_status
from logic.errors import QuotaExceededError
from models.tiers import MembershipTier, parse_tier
from models.user import ShippingAddress, SubscriptionStatus, User
from tools.database import (
    Database,
    deserialise_dict,
    deserialise_list,
    from_iso,
    serialise_json,
    to_iso,
)

_JSON_FIELDS = {"preferences", "privacy_settings", "preferred_styles", "favorite_colors"}
_UPDATABLE_FIELDS = {
    "display_name",
    "avatar_url",
    "bio",
    "phone_number",
    "preferences",
    "privacy_settings",
    "preferred_styles",
    "favorite_colors",
    "size",
    "membership_tier",
    "subscription_status",
}


class SQLiteUserStore:
    """Users keyed by internal id with a unique identity-provider subject."""

    def __init__(self, database: Database) -> None:
        self.database = database

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        address = deserialise_dict(row["shipping_address"])
        return User(
            id=row["id"],
            external_id=row["external_id"],
            display_name=row["display_name"],
            email=row["email"],
            avatar_url=row["avatar_url"],
            bio=row["bio"],
            phone_number=row["phone_number"],
            membership_tier=parse_tier(row["membership_tier"]) or MembershipTier.BASIC,
            subscription_status=SubscriptionStatus(row["subscription_status"]),
            ai_credits_used=row["ai_credits_used"],
            credits_period_start=from_iso(row["credits_period_start"]),
            gemini_api_key=row["gemini_api_key"],
            ai_photo_consent=bool(row["ai_photo_consent"]),
            ai_consent_date=from_iso(row["ai_consent_date"]),
            shipping_address=ShippingAddress.from_dict(address) if address else None,
            preferences=deserialise_dict(row["preferences"]),
            privacy_settings=deserialise_dict(row["privacy_settings"]),
            preferred_styles=deserialise_list(row["preferred_styles"]),
            favorite_colors=deserialise_list(row["favorite_colors"]),
            size=row["size"],
            created_at=from_iso(row["created_at"]),
            last_login_at=from_iso(row["last_login_at"]),
        )

    def get_user(self, user_id: str) -> Optional[User]:
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            return self._row_to_user(row) if row else None

    def get_by_external_id(self, external_id: str) -> Optional[User]:
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE external_id = ?", (external_id,)).fetchone()
            return self._row_to_user(row) if row else None

    def get_or_create(
        self,
        external_id: str,
        *,
        display_name: str,
        now: datetime,
        email: Optional[str] = None,
        avatar_url: Optional[str] = None,
        membership_tier: MembershipTier = MembershipTier.BASIC,
        subscription_status: SubscriptionStatus = SubscriptionStatus.INACTIVE,
    ) -> User:
        """Return the user for ``external_id``, creating it on first sight.

        ``last_login_at`` is refreshed on every call.
        """

        with self.database.transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO users (
                    id, external_id, display_name, email, avatar_url,
                    membership_tier, subscription_status, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    uuid.uuid4().hex,
                    external_id,
                    display_name,
                    email,
                    avatar_url,
                    membership_tier.value,
                    subscription_status.value,
                    to_iso(now),
                ),
            )
            conn.execute(
                "UPDATE users SET last_login_at = ? WHERE external_id = ?",
                (to_iso(now), external_id),
            )
            row = conn.execute("SELECT * FROM users WHERE external_id = ?", (external_id,)).fetchone()
        return self._row_to_user(row)

    def update_user(self, user_id: str, updated_fields: Dict[str, Any]) -> Optional[User]:
        assignments = []
        values: list = []
        for key, value in updated_fields.items():
            if key not in _UPDATABLE_FIELDS:
                raise ValueError(f"Field cannot be updated: {key}")
            if key in _JSON_FIELDS:
                value = serialise_json(value)
            elif hasattr(value, "value"):
                value = value.value
            assignments.append(f"{key} = ?")
            values.append(value)
        if assignments:
            with self.database.connection() as conn:
                conn.execute(
                    f"UPDATE users SET {', '.join(assignments)} WHERE id = ?",
                    (*values, user_id),
                )
        return self.get_user(user_id)

    def set_shipping_address(self, user_id: str, address: ShippingAddress) -> Optional[User]:
        with self.database.connection() as conn:
            conn.execute(
                "UPDATE users SET shipping_address = ? WHERE id = ?",
                (serialise_json(address.__dict__), user_id),
            )
        return self.get_user(user_id)

    def set_gemini_key(self, user_id: str, api_key: Optional[str]) -> None:
        with self.database.connection() as conn:
            conn.execute("UPDATE users SET gemini_api_key = ? WHERE id = ?", (api_key, user_id))

    def set_ai_consent(self, user_id: str, consent: bool, now: datetime) -> Optional[User]:
        with self.database.connection() as conn:
            conn.execute(
                "UPDATE users SET ai_photo_consent = ?, ai_consent_date = ? WHERE id = ?",
                (int(consent), to_iso(now) if consent else None, user_id),
            )
        return self.get_user(user_id)

    def consume_ai_credit(self, user_id: str, now: datetime) -> User:
        """Record one AI credit use, restarting the counter in a new month.

        The balance is re-read under the write lock, so concurrent requests
        cannot spend past the tier allowance.
        """

        with self.database.transaction() as conn:
            row = conn.execute(
                "SELECT membership_tier, ai_credits_used, credits_period_start FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
            if row is None:
                raise KeyError(user_id)
            period = from_iso(row["credits_period_start"])
            status = credit_status(row["membership_tier"], row["ai_credits_used"], period, now)
            if not status.has_credits:
                raise QuotaExceededError("No AI credits remaining", remaining=0, limit=status.limit)
            used, period_start = consume_credit(row["ai_credits_used"], period, now)
            conn.execute(
                "UPDATE users SET ai_credits_used = ?, credits_period_start = ? WHERE id = ?",
                (used, to_iso(period_start), user_id),
            )
            updated = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return self._row_to_user(updated)


__all__ = ["SQLiteUserStore"]
