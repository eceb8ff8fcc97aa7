"""SQLite persistence for collections and their ordered membership."""
from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Dict, List, Optional

from logic.errors import ValidationFailure
from models.collection import Collection, CollectionItem
from tools.database import Database, deserialise_list, from_iso, serialise_json, to_iso

_UPDATABLE_FIELDS = {"name", "description", "is_public", "tags", "cover_image_url"}


class SQLiteCollectionStore:
    def __init__(self, database: Database) -> None:
        self.database = database

    @staticmethod
    def _items(conn: sqlite3.Connection, collection_id: str) -> List[CollectionItem]:
        rows = conn.execute(
            "SELECT * FROM collection_items WHERE collection_id = ? ORDER BY item_order",
            (collection_id,),
        ).fetchall()
        return [
            CollectionItem(
                collection_id=row["collection_id"],
                item_id=row["item_id"],
                order=row["item_order"],
                added_at=from_iso(row["added_at"]),
            )
            for row in rows
        ]

    def _row_to_collection(self, conn: sqlite3.Connection, row: sqlite3.Row) -> Collection:
        return Collection(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            description=row["description"],
            is_public=bool(row["is_public"]),
            tags=deserialise_list(row["tags"]),
            cover_image_url=row["cover_image_url"],
            created_at=from_iso(row["created_at"]),
            items=self._items(conn, row["id"]),
        )

    def create_collection(self, collection: Collection) -> Collection:
        with self.database.connection() as conn:
            conn.execute(
                """
                INSERT INTO collections (id, user_id, name, description, is_public, tags, cover_image_url, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    collection.id,
                    collection.user_id,
                    collection.name,
                    collection.description,
                    int(collection.is_public),
                    serialise_json(collection.tags),
                    collection.cover_image_url,
                    to_iso(collection.created_at),
                ),
            )
        return self.get_collection(collection.id)

    def get_collection(self, collection_id: str) -> Optional[Collection]:
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM collections WHERE id = ?", (collection_id,)).fetchone()
            return self._row_to_collection(conn, row) if row else None

    def list_for_user(self, user_id: str) -> List[Collection]:
        with self.database.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM collections WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
                (user_id,),
            ).fetchall()
            return [self._row_to_collection(conn, row) for row in rows]

    def count_for_user(self, user_id: str) -> int:
        with self.database.connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM collections WHERE user_id = ?", (user_id,)).fetchone()
            return int(row["total"])

    def update_collection(self, collection_id: str, updated_fields: Dict[str, object]) -> Optional[Collection]:
        assignments = []
        values: list = []
        for key, value in updated_fields.items():
            if key not in _UPDATABLE_FIELDS:
                raise ValueError(f"Field cannot be updated: {key}")
            if key == "tags":
                value = serialise_json(value)
            elif key == "is_public":
                value = int(bool(value))
            assignments.append(f"{key} = ?")
            values.append(value)
        if assignments:
            with self.database.connection() as conn:
                conn.execute(
                    f"UPDATE collections SET {', '.join(assignments)} WHERE id = ?",
                    (*values, collection_id),
                )
        return self.get_collection(collection_id)

    def delete_collection(self, collection_id: str) -> None:
        with self.database.transaction() as conn:
            conn.execute("DELETE FROM collection_items WHERE collection_id = ?", (collection_id,))
            conn.execute("DELETE FROM collections WHERE id = ?", (collection_id,))

    def add_item(self, collection_id: str, item_id: str, now: datetime) -> CollectionItem:
        """Append ``item_id`` after the current last item."""

        with self.database.transaction() as conn:
            existing = conn.execute(
                "SELECT 1 FROM collection_items WHERE collection_id = ? AND item_id = ?",
                (collection_id, item_id),
            ).fetchone()
            if existing:
                raise ValidationFailure("Item already in collection")
            row = conn.execute(
                "SELECT COALESCE(MAX(item_order), 0) AS last FROM collection_items WHERE collection_id = ?",
                (collection_id,),
            ).fetchone()
            entry = CollectionItem(
                collection_id=collection_id,
                item_id=item_id,
                order=int(row["last"]) + 1,
                added_at=now,
            )
            conn.execute(
                "INSERT INTO collection_items (collection_id, item_id, item_order, added_at) VALUES (?, ?, ?, ?)",
                (collection_id, item_id, entry.order, to_iso(now)),
            )
        return entry

    def remove_item(self, collection_id: str, item_id: str) -> bool:
        with self.database.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM collection_items WHERE collection_id = ? AND item_id = ?",
                (collection_id, item_id),
            )
            return cursor.rowcount > 0


__all__ = ["SQLiteCollectionStore"]
