import itertools
from datetime import datetime, timedelta, timezone

import pytest

from merchant_queue.config import QueueSettings
from merchant_queue.estimator import Estimator
from merchant_queue.manager import QueueSystem
from merchant_queue.ordered_queue import OrderQueue
from merchant_queue.store import MemoryStore


class FakeClock:
    """Wall clock for the queue; starts 2026-10-18 10:00 UTC (18:00 in Shanghai)."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 10, 18, 10, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def settings():
    return QueueSettings()


@pytest.fixture
def queue(store, settings, clock):
    # Strictly increasing scores so arrival order is deterministic.
    return OrderQueue(store, settings, clock=clock, ns_clock=itertools.count(1_000).__next__)


@pytest.fixture
def estimator(store, settings):
    return Estimator(store, settings)


@pytest.fixture
def system(queue, estimator):
    return QueueSystem(queue, estimator)
