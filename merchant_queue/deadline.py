"""Caller-supplied timeout / cancellation signal.

Store calls are request/response and never block forever, but a scan over a
large partition can still outlive the caller's patience. Operations accept an
optional `Deadline` and check it between store calls and on every scanned
member.
"""

from __future__ import annotations

import threading
import time
from typing import Callable

from .errors import OperationCancelled


class Deadline:
    def __init__(
        self,
        timeout: float | None = None,
        *,
        cancel_event: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if timeout is not None and timeout < 0:
            raise ValueError("timeout must be >= 0")
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def remaining(self) -> float | None:
        """Seconds left before expiry (None means no time limit)."""
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    def check(self) -> None:
        if self.cancelled:
            raise OperationCancelled("operation cancelled by caller")
        if self._expires_at is not None and self._clock() >= self._expires_at:
            raise OperationCancelled("operation deadline exceeded")


def check(deadline: Deadline | None) -> None:
    if deadline is not None:
        deadline.check()
