"""Wardrobe storage abstractions and SQLite implementation."""
from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Dict, List, Optional

from logic.errors import StateConflictError
from models.wardrobe_item import (
    HistoryType,
    ItemHistoryEntry,
    ItemImage,
    ItemStatus,
    WardrobeItem,
)
from tools.database import Database, deserialise_list, from_iso, serialise_json, to_iso

_LIST_FIELDS = {"colors", "tags"}
_UPDATABLE_FIELDS = {
    "title",
    "description",
    "category",
    "subcategory",
    "brand",
    "size",
    "colors",
    "pattern",
    "condition",
    "tags",
    "estimated_value_cents",
    "available_for_swap",
    "available_for_sale",
    "sale_price_cents",
    "weight_oz",
}


class WardrobeStore:
    """Persistence interface for wardrobe items."""

    def create_item(self, item: WardrobeItem, upload_entry: ItemHistoryEntry) -> WardrobeItem:
        raise NotImplementedError

    def get_item(self, item_id: str) -> Optional[WardrobeItem]:
        raise NotImplementedError

    def list_items_for_owner(self, owner_id: str, filters: Dict[str, object]) -> List[WardrobeItem]:
        raise NotImplementedError

    def update_item(
        self,
        item_id: str,
        updated_fields: Dict[str, object],
        now: datetime,
        images: Optional[List[str]] = None,
    ) -> Optional[WardrobeItem]:
        raise NotImplementedError

    def soft_delete_item(self, item_id: str, now: datetime) -> None:
        raise NotImplementedError


def insert_history(conn: sqlite3.Connection, entry: ItemHistoryEntry) -> None:
    conn.execute(
        """
        INSERT INTO item_history (id, item_id, type, actor_ref, notes, amount_cents, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        """,
        (
            entry.id,
            entry.item_id,
            entry.type.value,
            entry.actor_ref,
            entry.notes,
            entry.amount_cents,
            to_iso(entry.created_at),
        ),
    )


class SQLiteWardrobeStore(WardrobeStore):
    """SQLite-backed store for wardrobe items, their images and history."""

    def __init__(self, database: Database) -> None:
        self.database = database

    @staticmethod
    def _replace_images(conn: sqlite3.Connection, item_id: str, urls: List[str]) -> None:
        conn.execute("DELETE FROM item_images WHERE item_id = ?", (item_id,))
        for position, url in enumerate(urls):
            conn.execute(
                "INSERT INTO item_images (item_id, position, url, is_primary) VALUES (?, ?, ?, ?)",
                (item_id, position, url, int(position == 0)),
            )

    def create_item(self, item: WardrobeItem, upload_entry: ItemHistoryEntry) -> WardrobeItem:
        with self.database.transaction() as conn:
            conn.execute(
                """
                INSERT INTO wardrobe_items (
                    id, owner_id, original_uploader_id, title, description, category, subcategory,
                    brand, size, colors, pattern, condition, tags, estimated_value_cents,
                    available_for_swap, available_for_sale, sale_price_cents, weight_oz, status,
                    swap_count, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    item.id,
                    item.owner_id,
                    item.original_uploader_id,
                    item.title,
                    item.description,
                    item.category.value,
                    item.subcategory,
                    item.brand,
                    item.size,
                    serialise_json(item.colors),
                    item.pattern,
                    item.condition.value,
                    serialise_json(item.tags),
                    item.estimated_value_cents,
                    int(item.available_for_swap),
                    int(item.available_for_sale),
                    item.sale_price_cents,
                    item.weight_oz,
                    item.status.value,
                    item.swap_count,
                    to_iso(item.created_at),
                    to_iso(item.updated_at),
                ),
            )
            self._replace_images(conn, item.id, [image.url for image in item.images])
            insert_history(conn, upload_entry)
        return self.get_item(item.id)

    def _row_to_item(self, conn: sqlite3.Connection, row: sqlite3.Row) -> WardrobeItem:
        images = [
            ItemImage(url=image["url"], is_primary=bool(image["is_primary"]), position=image["position"])
            for image in conn.execute(
                "SELECT * FROM item_images WHERE item_id = ? ORDER BY position", (row["id"],)
            ).fetchall()
        ]
        history = [
            ItemHistoryEntry(
                id=entry["id"],
                item_id=entry["item_id"],
                type=HistoryType(entry["type"]),
                actor_ref=entry["actor_ref"],
                notes=entry["notes"],
                amount_cents=entry["amount_cents"],
                created_at=from_iso(entry["created_at"]),
            )
            for entry in conn.execute(
                "SELECT * FROM item_history WHERE item_id = ? ORDER BY created_at, rowid", (row["id"],)
            ).fetchall()
        ]
        return WardrobeItem(
            id=row["id"],
            owner_id=row["owner_id"],
            original_uploader_id=row["original_uploader_id"],
            title=row["title"],
            description=row["description"],
            category=row["category"],
            subcategory=row["subcategory"],
            brand=row["brand"],
            size=row["size"],
            colors=deserialise_list(row["colors"]),
            pattern=row["pattern"],
            condition=row["condition"],
            tags=deserialise_list(row["tags"]),
            estimated_value_cents=row["estimated_value_cents"],
            available_for_swap=bool(row["available_for_swap"]),
            available_for_sale=bool(row["available_for_sale"]),
            sale_price_cents=row["sale_price_cents"],
            weight_oz=row["weight_oz"],
            status=row["status"],
            swap_count=row["swap_count"],
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
            images=images,
            history=history,
        )

    def get_item(self, item_id: str) -> Optional[WardrobeItem]:
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM wardrobe_items WHERE id = ?", (item_id,)).fetchone()
            return self._row_to_item(conn, row) if row else None

    def list_items_for_owner(self, owner_id: str, filters: Dict[str, object] | None = None) -> List[WardrobeItem]:
        """List an owner's items; deleted items only appear when asked for by status."""

        filters = filters or {}
        clauses = ["owner_id = ?"]
        values: list = [owner_id]
        status = filters.get("status")
        if status:
            clauses.append("status = ?")
            values.append(getattr(status, "value", status))
        else:
            clauses.append("status != ?")
            values.append(ItemStatus.DELETED.value)
        category = filters.get("category")
        if category:
            clauses.append("category = ?")
            values.append(getattr(category, "value", category))
        if filters.get("available_for_swap") is not None:
            clauses.append("available_for_swap = ?")
            values.append(int(bool(filters["available_for_swap"])))
        if filters.get("available_for_sale") is not None:
            clauses.append("available_for_sale = ?")
            values.append(int(bool(filters["available_for_sale"])))

        with self.database.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM wardrobe_items WHERE {' AND '.join(clauses)} ORDER BY created_at DESC, rowid DESC",
                values,
            ).fetchall()
            items = [self._row_to_item(conn, row) for row in rows]

        search = str(filters.get("search") or "")
        return [item for item in items if item.matches_search(search)]

    def count_items_for_owner(self, owner_id: str) -> int:
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM wardrobe_items WHERE owner_id = ? AND status != ?",
                (owner_id, ItemStatus.DELETED.value),
            ).fetchone()
            return int(row["total"])

    def update_item(
        self,
        item_id: str,
        updated_fields: Dict[str, object],
        now: datetime,
        images: Optional[List[str]] = None,
    ) -> Optional[WardrobeItem]:
        assignments = []
        values: list = []
        for key, value in updated_fields.items():
            if key not in _UPDATABLE_FIELDS:
                raise ValueError(f"Field cannot be updated: {key}")
            if key in _LIST_FIELDS:
                value = serialise_json(value)
            elif isinstance(value, bool):
                value = int(value)
            elif hasattr(value, "value"):
                value = value.value
            assignments.append(f"{key} = ?")
            values.append(value)
        assignments.append("updated_at = ?")
        values.append(to_iso(now))

        with self.database.transaction() as conn:
            conn.execute(
                f"UPDATE wardrobe_items SET {', '.join(assignments)} WHERE id = ?",
                (*values, item_id),
            )
            if images is not None:
                self._replace_images(conn, item_id, images)
        return self.get_item(item_id)

    def soft_delete_item(self, item_id: str, now: datetime) -> None:
        """Mark an item DELETED unless it is reserved by an outstanding swap."""

        with self.database.connection() as conn:
            cursor = conn.execute(
                "UPDATE wardrobe_items SET status = ?, updated_at = ? WHERE id = ? AND status NOT IN (?, ?)",
                (
                    ItemStatus.DELETED.value,
                    to_iso(now),
                    item_id,
                    ItemStatus.ON_LOAN.value,
                    ItemStatus.DELETED.value,
                ),
            )
            if cursor.rowcount == 0:
                raise StateConflictError("Item cannot be deleted while it is part of an active swap")

    def list_store_items(self, owner_id: str) -> List[WardrobeItem]:
        return self.list_items_for_owner(
            owner_id, {"status": ItemStatus.AVAILABLE, "available_for_sale": True}
        )

    def record_sale(self, item_id: str, expected_owner_id: str, entry: ItemHistoryEntry) -> None:
        """Move an AVAILABLE item to SOLD and append its SALE history entry."""

        with self.database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE wardrobe_items SET status = ?, updated_at = ? WHERE id = ? AND owner_id = ? AND status = ?",
                (
                    ItemStatus.SOLD.value,
                    to_iso(entry.created_at),
                    item_id,
                    expected_owner_id,
                    ItemStatus.AVAILABLE.value,
                ),
            )
            if cursor.rowcount == 0:
                raise StateConflictError("Item is no longer available for sale")
            insert_history(conn, entry)

    def list_sales_for_owner(self, owner_id: str) -> List[Dict[str, object]]:
        """SALE history entries for items the owner sold, newest first."""

        with self.database.connection() as conn:
            rows = conn.execute(
                """
                SELECT h.id, h.item_id, h.amount_cents, h.created_at, i.title, i.sale_price_cents
                FROM item_history h JOIN wardrobe_items i ON i.id = h.item_id
                WHERE h.type = ? AND i.owner_id = ?
                ORDER BY h.created_at DESC
                """,
                (HistoryType.SALE.value, owner_id),
            ).fetchall()
        return [
            {
                "history_id": row["id"],
                "item_id": row["item_id"],
                "item_title": row["title"],
                "amount_cents": row["amount_cents"]
                if row["amount_cents"] is not None
                else row["sale_price_cents"] or 0,
                "sold_at": from_iso(row["created_at"]),
            }
            for row in rows
        ]


__all__ = ["WardrobeStore", "SQLiteWardrobeStore", "insert_history"]
