"""Per-merchant order queue with wait-time estimation.

Orders are admitted into a day-scoped ordered partition held in Redis (a
sorted set per calendar day). Each merchant's historical processing speed is
kept in a small hash and used to estimate how long a queued or not-yet-queued
order will wait.

Layers:
- `OrderQueue` (ordering, position, preceding load)
- `Estimator` (per-merchant statistics + wait formula)
- `QueueSystem` (facade composing both)
- `MqttQueueService` (optional MQTT request/response surface)
"""

from .errors import InvalidOrder, OperationCancelled, OrderNotFound, QueueError, StoreUnavailable
from .estimator import Estimator
from .manager import QueueSystem
from .models import MerchantStats, OrderEntry, OrderPosition, QueueStatus
from .ordered_queue import OrderQueue

__all__ = [
    "Estimator",
    "InvalidOrder",
    "MerchantStats",
    "OperationCancelled",
    "OrderEntry",
    "OrderNotFound",
    "OrderPosition",
    "OrderQueue",
    "QueueError",
    "QueueStatus",
    "QueueSystem",
    "StoreUnavailable",
]
