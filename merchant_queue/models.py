from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any


@dataclass(frozen=True)
class OrderEntry:
    """One queued order.

    `enqueue_timestamp` (nanoseconds since the epoch) is the sort score inside
    the partition; `enqueue_time` is the wall-clock instant later used to
    measure how long the order took. Both are filled at enqueue when unset.
    """

    merchant_id: str
    order_id: str
    item_count: int
    enqueue_timestamp: int = 0
    enqueue_time: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "merchant_id": self.merchant_id,
            "order_id": self.order_id,
            "item_count": self.item_count,
            "enqueue_timestamp": self.enqueue_timestamp,
            "enqueue_time": self.enqueue_time.isoformat() if self.enqueue_time else None,
        }


@dataclass(frozen=True)
class OrderPosition:
    position: int  # zero-based
    entry: OrderEntry
    preceding_items: int
    preceding_orders: int


@dataclass(frozen=True)
class QueueStatus:
    order_count: int
    total_items: int


@dataclass(frozen=True)
class MerchantStats:
    avg_item_time: timedelta = timedelta(0)
    processed_orders: int = 0


@dataclass(frozen=True)
class PositionEstimate:
    position: int
    estimated_wait: timedelta
    entry: OrderEntry


@dataclass(frozen=True)
class StatusEstimate:
    order_count: int
    total_items: int
    estimated_wait: timedelta


@dataclass(frozen=True)
class Completion:
    entry: OrderEntry
    elapsed: timedelta
