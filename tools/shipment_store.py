"""SQLite persistence for shipments."""
from __future__ import annotations

import sqlite3
from typing import Optional

from models.shipment import Shipment, ShipmentStatus
from models.user import ShippingAddress
from tools.database import Database, deserialise_dict, from_iso, serialise_json, to_iso


class SQLiteShipmentStore:
    def __init__(self, database: Database) -> None:
        self.database = database

    @staticmethod
    def _row_to_shipment(row: sqlite3.Row) -> Shipment:
        return Shipment(
            id=row["id"],
            item_id=row["item_id"],
            sender_id=row["sender_id"],
            tracking_number=row["tracking_number"],
            carrier=row["carrier"],
            service=row["service"],
            status=ShipmentStatus(row["status"]),
            label_url=row["label_url"],
            estimated_delivery=from_iso(row["estimated_delivery"]),
            actual_delivery=from_iso(row["actual_delivery"]),
            from_address=ShippingAddress.from_dict(deserialise_dict(row["from_address"])),
            to_address=ShippingAddress.from_dict(deserialise_dict(row["to_address"])),
            created_at=from_iso(row["created_at"]),
        )

    def create_shipment(self, shipment: Shipment) -> Shipment:
        with self.database.connection() as conn:
            conn.execute(
                """
                INSERT INTO shipments (
                    id, item_id, sender_id, tracking_number, carrier, service, status, label_url,
                    estimated_delivery, actual_delivery, from_address, to_address, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    shipment.id,
                    shipment.item_id,
                    shipment.sender_id,
                    shipment.tracking_number,
                    shipment.carrier,
                    shipment.service,
                    shipment.status.value,
                    shipment.label_url,
                    to_iso(shipment.estimated_delivery),
                    to_iso(shipment.actual_delivery),
                    serialise_json(shipment.from_address.__dict__),
                    serialise_json(shipment.to_address.__dict__),
                    to_iso(shipment.created_at),
                ),
            )
        return shipment

    def get_by_tracking_number(self, tracking_number: str) -> Optional[Shipment]:
        with self.database.connection() as conn:
            row = conn.execute(
                "SELECT * FROM shipments WHERE tracking_number = ?", (tracking_number,)
            ).fetchone()
            return self._row_to_shipment(row) if row else None

    def update_status(self, shipment_id: str, status: ShipmentStatus) -> None:
        with self.database.connection() as conn:
            conn.execute("UPDATE shipments SET status = ? WHERE id = ?", (status.value, shipment_id))


__all__ = ["SQLiteShipmentStore"]
