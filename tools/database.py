"""SQLite connection management and schema for the exchange."""
from __future__ import annotations

import contextlib
import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, List, Optional

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        external_id TEXT NOT NULL UNIQUE,
        display_name TEXT NOT NULL,
        email TEXT,
        avatar_url TEXT,
        bio TEXT,
        phone_number TEXT,
        membership_tier TEXT NOT NULL DEFAULT 'BASIC',
        subscription_status TEXT NOT NULL DEFAULT 'INACTIVE',
        ai_credits_used INTEGER NOT NULL DEFAULT 0,
        credits_period_start TEXT,
        gemini_api_key TEXT,
        ai_photo_consent INTEGER NOT NULL DEFAULT 0,
        ai_consent_date TEXT,
        shipping_address TEXT,
        preferences TEXT,
        privacy_settings TEXT,
        preferred_styles TEXT,
        favorite_colors TEXT,
        size TEXT,
        created_at TEXT NOT NULL,
        last_login_at TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS wardrobe_items (
        id TEXT PRIMARY KEY,
        owner_id TEXT NOT NULL,
        original_uploader_id TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        category TEXT NOT NULL,
        subcategory TEXT,
        brand TEXT,
        size TEXT NOT NULL,
        colors TEXT,
        pattern TEXT,
        condition TEXT NOT NULL,
        tags TEXT,
        estimated_value_cents INTEGER,
        available_for_swap INTEGER NOT NULL DEFAULT 1,
        available_for_sale INTEGER NOT NULL DEFAULT 0,
        sale_price_cents INTEGER,
        weight_oz REAL,
        status TEXT NOT NULL DEFAULT 'AVAILABLE',
        swap_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_wardrobe_items_owner ON wardrobe_items (owner_id, status);",
    """
    CREATE TABLE IF NOT EXISTS item_images (
        item_id TEXT NOT NULL,
        position INTEGER NOT NULL,
        url TEXT NOT NULL,
        is_primary INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (item_id, position)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS item_history (
        id TEXT PRIMARY KEY,
        item_id TEXT NOT NULL,
        type TEXT NOT NULL,
        actor_ref TEXT NOT NULL,
        notes TEXT,
        amount_cents INTEGER,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS swap_requests (
        id TEXT PRIMARY KEY,
        requester_id TEXT NOT NULL,
        owner_id TEXT NOT NULL,
        item_id TEXT NOT NULL,
        status TEXT NOT NULL,
        delivery_method TEXT NOT NULL,
        scheduled_pickup TEXT,
        scheduled_return TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT,
        completed_at TEXT
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS swap_messages (
        id TEXT PRIMARY KEY,
        swap_id TEXT NOT NULL,
        sender_id TEXT NOT NULL,
        content TEXT NOT NULL,
        sequence INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        UNIQUE (swap_id, sequence)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS collections (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        is_public INTEGER NOT NULL DEFAULT 0,
        tags TEXT,
        cover_image_url TEXT,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS collection_items (
        collection_id TEXT NOT NULL,
        item_id TEXT NOT NULL,
        item_order INTEGER NOT NULL,
        added_at TEXT NOT NULL,
        PRIMARY KEY (collection_id, item_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS creator_profiles (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL UNIQUE,
        store_name TEXT NOT NULL,
        bio TEXT,
        branding_colors TEXT,
        banner_image_url TEXT,
        social_links TEXT,
        stripe_account_id TEXT,
        commission_rate REAL NOT NULL DEFAULT 10,
        total_sales INTEGER NOT NULL DEFAULT 0,
        is_verified INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS promotions (
        id TEXT PRIMARY KEY,
        creator_id TEXT NOT NULL,
        title TEXT NOT NULL,
        description TEXT,
        code TEXT NOT NULL,
        discount_type TEXT NOT NULL,
        discount_value REAL NOT NULL,
        min_purchase_cents INTEGER,
        max_uses INTEGER,
        uses_count INTEGER NOT NULL DEFAULT 0,
        expires_at TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at TEXT NOT NULL,
        UNIQUE (creator_id, code)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS shipments (
        id TEXT PRIMARY KEY,
        item_id TEXT NOT NULL,
        sender_id TEXT NOT NULL,
        tracking_number TEXT UNIQUE,
        carrier TEXT,
        service TEXT,
        status TEXT NOT NULL,
        label_url TEXT,
        estimated_delivery TEXT,
        actual_delivery TEXT,
        from_address TEXT NOT NULL,
        to_address TEXT NOT NULL,
        created_at TEXT NOT NULL
    );
    """,
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def from_iso(raw: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(raw) if raw else None


def serialise_json(value: Any) -> str:
    return json.dumps(value if value is not None else None, default=str)


def deserialise_list(raw: Optional[str]) -> List[Any]:
    return json.loads(raw) if raw else []


def deserialise_dict(raw: Optional[str]) -> dict:
    return json.loads(raw) if raw else {}


class Database:
    """Owns the SQLite file and hands out short-lived connections.

    Multi-row writes go through :meth:`transaction`, which takes the write lock
    up front with ``BEGIN IMMEDIATE`` so concurrent writers serialise instead of
    failing late on commit.
    """

    def __init__(self, database_path: str | Path = "data/exchange.db", timeout_seconds: float = 30.0) -> None:
        self.database_path = Path(database_path)
        self.timeout_seconds = timeout_seconds
        if self.database_path.parent and not self.database_path.parent.exists():
            self.database_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_tables()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.database_path, timeout=self.timeout_seconds, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_tables(self) -> None:
        with self.connection() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

    @contextlib.contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Autocommit connection for single-statement reads and writes."""

        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextlib.contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """All-or-nothing unit of work holding the database write lock."""

        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()


__all__ = [
    "Database",
    "utcnow",
    "to_iso",
    "from_iso",
    "serialise_json",
    "deserialise_list",
    "deserialise_dict",
]
