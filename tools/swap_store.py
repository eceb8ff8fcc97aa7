"""SQLite persistence for swap requests and their message threads.

Every status change is a compare-and-swap on the expected prior status,
applied in the same transaction as the item update and history append.
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime
from typing import Callable, List, Optional

from logic.errors import QuotaExceededError, StateConflictError
from logic.swap_lifecycle import PlannedTransition
from models.swap import ACTIVE_STATUSES, DeliveryMethod, SwapMessage, SwapRequest, SwapStatus
from models.wardrobe_item import ItemHistoryEntry, ItemStatus
from tools.database import Database, from_iso, to_iso
from tools.wardrobe_store import insert_history

_ACTIVE = tuple(status.value for status in sorted(ACTIVE_STATUSES))


class SQLiteSwapStore:
    def __init__(self, database: Database) -> None:
        self.database = database

    @staticmethod
    def _row_to_swap(row: sqlite3.Row) -> SwapRequest:
        return SwapRequest(
            id=row["id"],
            requester_id=row["requester_id"],
            owner_id=row["owner_id"],
            item_id=row["item_id"],
            status=SwapStatus(row["status"]),
            delivery_method=DeliveryMethod(row["delivery_method"]),
            scheduled_pickup=from_iso(row["scheduled_pickup"]),
            scheduled_return=from_iso(row["scheduled_return"]),
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
            completed_at=from_iso(row["completed_at"]),
        )

    @staticmethod
    def _row_to_message(row: sqlite3.Row) -> SwapMessage:
        return SwapMessage(
            id=row["id"],
            swap_id=row["swap_id"],
            sender_id=row["sender_id"],
            content=row["content"],
            sequence=row["sequence"],
            created_at=from_iso(row["created_at"]),
        )

    @staticmethod
    def _count_active_sent(conn: sqlite3.Connection, requester_id: str) -> int:
        row = conn.execute(
            f"SELECT COUNT(*) AS total FROM swap_requests WHERE requester_id = ? AND status IN ({', '.join('?' for _ in _ACTIVE)})",
            (requester_id, *_ACTIVE),
        ).fetchone()
        return int(row["total"])

    @staticmethod
    def _insert_message(
        conn: sqlite3.Connection, swap_id: str, sender_id: str, content: str, now: datetime
    ) -> SwapMessage:
        row = conn.execute(
            "SELECT COALESCE(MAX(sequence), 0) AS last FROM swap_messages WHERE swap_id = ?",
            (swap_id,),
        ).fetchone()
        message = SwapMessage(
            id=uuid.uuid4().hex,
            swap_id=swap_id,
            sender_id=sender_id,
            content=content,
            created_at=now,
            sequence=int(row["last"]) + 1,
        )
        conn.execute(
            "INSERT INTO swap_messages (id, swap_id, sender_id, content, sequence, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (message.id, swap_id, sender_id, content, message.sequence, to_iso(now)),
        )
        return message

    def count_active_sent(self, requester_id: str) -> int:
        with self.database.connection() as conn:
            return self._count_active_sent(conn, requester_id)

    def create_swap(
        self,
        swap: SwapRequest,
        first_message: Optional[str] = None,
        limit_reached: Callable[[int], bool] | None = None,
    ) -> SwapRequest:
        """Reserve the item and persist the request in one transaction.

        Raises:
            QuotaExceededError: ``limit_reached`` reports the requester is at their cap.
            StateConflictError: the item is no longer AVAILABLE for swap by this owner.
        """

        with self.database.transaction() as conn:
            if limit_reached is not None and limit_reached(self._count_active_sent(conn, swap.requester_id)):
                raise QuotaExceededError("Active swap limit reached for your membership tier")
            cursor = conn.execute(
                """
                UPDATE wardrobe_items SET status = ?, updated_at = ?
                WHERE id = ? AND owner_id = ? AND status = ? AND available_for_swap = 1
                """,
                (
                    ItemStatus.ON_LOAN.value,
                    to_iso(swap.created_at),
                    swap.item_id,
                    swap.owner_id,
                    ItemStatus.AVAILABLE.value,
                ),
            )
            if cursor.rowcount == 0:
                raise StateConflictError("Item is not available for swap")
            conn.execute(
                """
                INSERT INTO swap_requests (
                    id, requester_id, owner_id, item_id, status, delivery_method,
                    scheduled_pickup, scheduled_return, created_at, updated_at, completed_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    swap.id,
                    swap.requester_id,
                    swap.owner_id,
                    swap.item_id,
                    swap.status.value,
                    swap.delivery_method.value,
                    to_iso(swap.scheduled_pickup),
                    to_iso(swap.scheduled_return),
                    to_iso(swap.created_at),
                    to_iso(swap.created_at),
                    None,
                ),
            )
            if first_message:
                self._insert_message(conn, swap.id, swap.requester_id, first_message, swap.created_at)
        return self.get_swap(swap.id)

    def apply_transition(
        self,
        swap: SwapRequest,
        plan: PlannedTransition,
        now: datetime,
        history_entry: Optional[ItemHistoryEntry] = None,
    ) -> SwapRequest:
        """Apply ``plan`` only if the swap is still in ``plan.from_status``."""

        completed_at = to_iso(now) if plan.to_status is SwapStatus.COMPLETED else None
        with self.database.transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE swap_requests SET status = ?, updated_at = ?, completed_at = COALESCE(?, completed_at)
                WHERE id = ? AND status = ?
                """,
                (plan.to_status.value, to_iso(now), completed_at, swap.id, plan.from_status.value),
            )
            if cursor.rowcount == 0:
                raise StateConflictError(f"Swap is no longer {plan.from_status.value}")
            if plan.transfers_ownership:
                conn.execute(
                    """
                    UPDATE wardrobe_items
                    SET status = ?, owner_id = ?, swap_count = swap_count + 1, updated_at = ?
                    WHERE id = ? AND owner_id = ?
                    """,
                    (plan.item_status.value, swap.requester_id, to_iso(now), swap.item_id, swap.owner_id),
                )
            else:
                conn.execute(
                    "UPDATE wardrobe_items SET status = ?, updated_at = ? WHERE id = ?",
                    (plan.item_status.value, to_iso(now), swap.item_id),
                )
            if history_entry is not None:
                insert_history(conn, history_entry)
        return self.get_swap(swap.id)

    def get_swap(self, swap_id: str, include_messages: bool = False) -> Optional[SwapRequest]:
        with self.database.connection() as conn:
            row = conn.execute("SELECT * FROM swap_requests WHERE id = ?", (swap_id,)).fetchone()
            if row is None:
                return None
            swap = self._row_to_swap(row)
            if include_messages:
                swap.messages = self._list_messages(conn, swap_id)
            return swap

    def list_swaps(self, user_id: str, direction: str = "all", status: SwapStatus | None = None) -> List[SwapRequest]:
        if direction == "sent":
            clauses, values = ["requester_id = ?"], [user_id]
        elif direction == "received":
            clauses, values = ["owner_id = ?"], [user_id]
        else:
            clauses, values = ["(requester_id = ? OR owner_id = ?)"], [user_id, user_id]
        if status is not None:
            clauses.append("status = ?")
            values.append(status.value)
        with self.database.connection() as conn:
            rows = conn.execute(
                f"SELECT * FROM swap_requests WHERE {' AND '.join(clauses)} ORDER BY created_at DESC, rowid DESC",
                values,
            ).fetchall()
            return [self._row_to_swap(row) for row in rows]

    def _list_messages(self, conn: sqlite3.Connection, swap_id: str) -> List[SwapMessage]:
        rows = conn.execute(
            "SELECT * FROM swap_messages WHERE swap_id = ? ORDER BY sequence", (swap_id,)
        ).fetchall()
        return [self._row_to_message(row) for row in rows]

    def list_messages(self, swap_id: str) -> List[SwapMessage]:
        with self.database.connection() as conn:
            return self._list_messages(conn, swap_id)

    def add_message(self, swap_id: str, sender_id: str, content: str, now: datetime) -> SwapMessage:
        with self.database.transaction() as conn:
            message = self._insert_message(conn, swap_id, sender_id, content, now)
            conn.execute("UPDATE swap_requests SET updated_at = ? WHERE id = ?", (to_iso(now), swap_id))
        return message


__all__ = ["SQLiteSwapStore"]
