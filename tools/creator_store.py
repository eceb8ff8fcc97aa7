"""SQLite persistence for creator profiles and promotions."""
from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Optional

from logic.errors import ValidationFailure
from models.creator import CreatorProfile, DiscountType, Promotion
from tools.database import Database, deserialise_dict, from_iso, serialise_json, to_iso


class SQLiteCreatorStore:
    def __init__(self, database: Database) -> None:
        self.database = database

    @staticmethod
    def _row_to_profile(row: sqlite3.Row) -> CreatorProfile:
        return CreatorProfile(
            id=row["id"],
            user_id=row["user_id"],
            store_name=row["store_name"],
            bio=row["bio"],
            branding_colors=deserialise_dict(row["branding_colors"]),
            banner_image_url=row["banner_image_url"],
            social_links=deserialise_dict(row["social_links"]),
            stripe_account_id=row["stripe_account_id"],
            commission_rate=row["commission_rate"],
            total_sales=row["total_sales"],
            is_verified=bool(row["is_verified"]),
            created_at=from_iso(row["created_at"]),
        )

    @staticmethod
    def _row_to_promotion(row: sqlite3.Row) -> Promotion:
        return Promotion(
            id=row["id"],
            creator_id=row["creator_id"],
            title=row["title"],
            description=row["description"],
            code=row["code"],
            discount_type=DiscountType(row["discount_type"]),
            discount_value=row["discount_value"],
            min_purchase_cents=row["min_purchase_cents"],
            max_uses=row["max_uses"],
            uses_count=row["uses_count"],
            expires_at=from_iso(row["expires_at"]),
            is_active=bool(row["is_active"]),
            created_at=from_iso(row["created_at"]),
        )

    def get_by_user(self, user_id: str) -> Optional[CreatorProfile]:
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM creator_profiles WHERE user_id = ?", (user_id,)).fetchone()
            return self._row_to_profile(row) if row else None

    def get_profile(self, creator_id: str) -> Optional[CreatorProfile]:
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM creator_profiles WHERE id = ?", (creator_id,)).fetchone()
            return self._row_to_profile(row) if row else None

    def upsert_profile(self, profile: CreatorProfile) -> CreatorProfile:
        """Create the profile or update its storefront fields; payout data is untouched."""

        with self.database.connection() as conn:
            conn.execute(
                """
                INSERT INTO creator_profiles (
                    id, user_id, store_name, bio, branding_colors, banner_image_url,
                    social_links, commission_rate, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(user_id) DO UPDATE SET
                    store_name = excluded.store_name,
                    bio = excluded.bio,
                    branding_colors = excluded.branding_colors,
                    banner_image_url = excluded.banner_image_url,
                    social_links = excluded.social_links
                """,
                (
                    profile.id,
                    profile.user_id,
                    profile.store_name,
                    profile.bio,
                    serialise_json(profile.branding_colors),
                    profile.banner_image_url,
                    serialise_json(profile.social_links),
                    profile.commission_rate,
                    to_iso(profile.created_at),
                ),
            )
        return self.get_by_user(profile.user_id)

    def set_stripe_account(self, creator_id: str, account_id: str) -> None:
        with self.database.connection() as conn:
            conn.execute(
                "UPDATE creator_profiles SET stripe_account_id = ? WHERE id = ?",
                (account_id, creator_id),
            )

    def increment_total_sales(self, creator_id: str) -> None:
        with self.database.connection() as conn:
            conn.execute(
                "UPDATE creator_profiles SET total_sales = total_sales + 1 WHERE id = ?",
                (creator_id,),
            )

    def _active_clause(self) -> str:
        return "is_active = 1 AND (expires_at IS NULL OR expires_at >= ?)"

    def count_active_promotions(self, creator_id: str, now: datetime) -> int:
        with self.database.connection() as conn:
            row = conn.execute(
                f"SELECT COUNT(*) AS total FROM promotions WHERE creator_id = ? AND {self._active_clause()}",
                (creator_id, to_iso(now)),
            ).fetchone()
            return int(row["total"])

    def list_promotions(self, creator_id: str, now: Optional[datetime] = None) -> List[Promotion]:
        """All promotions, or only the currently active ones when ``now`` is given."""

        query = "SELECT * FROM promotions WHERE creator_id = ?"
        values: list = [creator_id]
        if now is not None:
            query += f" AND {self._active_clause()}"
            values.append(to_iso(now))
        with self.database.connection() as conn:
            rows = conn.execute(query + " ORDER BY created_at DESC, rowid DESC", values).fetchall()
            return [self._row_to_promotion(row) for row in rows]

    def create_promotion(self, promotion: Promotion) -> Promotion:
        try:
            with self.database.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO promotions (
                        id, creator_id, title, description, code, discount_type, discount_value,
                        min_purchase_cents, max_uses, uses_count, expires_at, is_active, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        promotion.id,
                        promotion.creator_id,
                        promotion.title,
                        promotion.description,
                        promotion.code,
                        promotion.discount_type.value,
                        promotion.discount_value,
                        promotion.min_purchase_cents,
                        promotion.max_uses,
                        promotion.uses_count,
                        to_iso(promotion.expires_at),
                        int(promotion.is_active),
                        to_iso(promotion.created_at),
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise ValidationFailure("Promotion code already exists") from exc
        return promotion


__all__ = ["SQLiteCreatorStore"]
