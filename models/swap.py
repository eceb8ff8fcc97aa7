"""Swap request and message models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class SwapStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class DeliveryMethod(str, Enum):
    MEETUP = "MEETUP"
    SHIPPING = "SHIPPING"
    PICKUP = "PICKUP"


TERMINAL_STATUSES = frozenset({SwapStatus.DECLINED, SwapStatus.COMPLETED, SwapStatus.CANCELED})
ACTIVE_STATUSES = frozenset({SwapStatus.PENDING, SwapStatus.ACCEPTED})


@dataclass
class SwapMessage:
    id: str
    swap_id: str
    sender_id: str
    content: str
    created_at: datetime
    sequence: int = 0


@dataclass
class SwapRequest:
    """A request by ``requester_id`` to receive ``item_id`` from ``owner_id``."""

    id: str
    requester_id: str
    owner_id: str
    item_id: str
    delivery_method: DeliveryMethod
    created_at: datetime
    status: SwapStatus = SwapStatus.PENDING
    scheduled_pickup: Optional[datetime] = None
    scheduled_return: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    messages: List[SwapMessage] = field(default_factory=list)

    def is_participant(self, user_id: str) -> bool:
        return user_id in (self.requester_id, self.owner_id)


__all__ = [
    "SwapStatus",
    "DeliveryMethod",
    "TERMINAL_STATUSES",
    "ACTIVE_STATUSES",
    "SwapMessage",
    "SwapRequest",
]
