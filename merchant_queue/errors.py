"""Error taxonomy and the shared error envelope.

Exceptions are raised by the engine; `ErrorResponse` is what the MQTT service
replies with so clients see consistent codes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class QueueError(Exception):
    """Base class for every error raised by the queue engine."""

    code = "queue_error"


class StoreUnavailable(QueueError):
    """The backing store failed (transport, timeout, server error)."""

    code = "store_unavailable"


class OrderNotFound(QueueError, LookupError):
    """No entry with the requested order id is present in today's partition."""

    code = "order_not_found"

    def __init__(self, order_id: str) -> None:
        super().__init__(f"order not found: {order_id}")
        self.order_id = order_id


class InvalidOrder(QueueError, ValueError):
    """Malformed stored entry or an order that cannot be processed (e.g. zero items)."""

    code = "invalid_order"


class OperationCancelled(QueueError, TimeoutError):
    """The caller cancelled the operation or its deadline passed."""

    code = "cancelled"


@dataclass(frozen=True)
class ErrorResponse:
    code: str
    message: str

    @classmethod
    def from_exception(cls, exc: QueueError) -> "ErrorResponse":
        return cls(exc.code, str(exc))

    def to_message(self, *, corr_id: str | None = None) -> dict[str, Any]:
        msg: dict[str, Any] = {"type": "error", "code": self.code, "message": self.message}
        if corr_id is not None:
            msg["corr_id"] = corr_id
        return msg
