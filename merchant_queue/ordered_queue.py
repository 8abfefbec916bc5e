from __future__ import annotations

# Ordered queue over one day partition.
#
# Orders are sorted-set members scored by their enqueue timestamp (ns), so
# the partition's ascending order is arrival order. Positions and preceding
# load are derived by scanning the partition; there is no secondary index.
#
# Find-then-remove is not atomic: a concurrent removal between the scan and
# the ZREM surfaces as OrderNotFound, which callers treat as "already gone".

import logging
import time
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Iterator

from .codec import decode_entry, encode_entry
from .config import QueueSettings
from .deadline import Deadline, check
from .errors import InvalidOrder, OrderNotFound
from .keys import partition_day, partition_key
from .models import OrderEntry, OrderPosition, QueueStatus
from .store import QueueStore

log = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderQueue:
    """Enqueue / locate / remove / list against today's partition."""

    def __init__(
        self,
        store: QueueStore,
        settings: QueueSettings | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
        ns_clock: Callable[[], int] = time.time_ns,
    ) -> None:
        self.store = store
        self.settings = settings or QueueSettings()
        self.clock = clock
        self.ns_clock = ns_clock

    def partition_key(self) -> str:
        return partition_key(partition_day(self.clock(), self.settings.timezone))

    # -------------------- mutations --------------------

    def enqueue(self, entry: OrderEntry, *, deadline: Deadline | None = None) -> OrderEntry:
        """Insert `entry` at its timestamp and refresh the partition expiry.

        Missing timestamps default to the call time. Returns the entry as
        stored.
        """
        count = entry.item_count
        # bool is an int subclass but would be stored as JSON true
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise InvalidOrder(f"order {entry.order_id} must have a positive item count")
        if not entry.merchant_id or not entry.order_id:
            raise InvalidOrder("merchant_id and order_id are required")

        if not entry.enqueue_timestamp:
            entry = replace(entry, enqueue_timestamp=self.ns_clock())
        if entry.enqueue_time is None:
            entry = replace(entry, enqueue_time=self.clock())

        key = self.partition_key()
        check(deadline)
        # Scores are float64: timestamps closer than ~256 ns share a score and
        # then sort by member text rather than arrival.
        self.store.zadd_with_expiry(
            key,
            encode_entry(entry),
            float(entry.enqueue_timestamp),
            self.settings.partition_ttl,
        )
        log.debug("enqueued order %s for merchant %s into %s", entry.order_id, entry.merchant_id, key)
        return entry

    def remove(self, order_id: str, *, deadline: Deadline | None = None) -> OrderEntry:
        """Remove the stored member for `order_id`; returns the removed entry."""
        key = self.partition_key()
        for _index, member, entry in self._scan(key, deadline):
            if entry.order_id == order_id:
                check(deadline)
                if self.store.zrem(key, member) == 0:
                    # Someone else removed it between the scan and ZREM.
                    raise OrderNotFound(order_id)
                log.debug("removed order %s from %s", order_id, key)
                return entry
        raise OrderNotFound(order_id)

    # -------------------- queries --------------------

    def entries(self, *, deadline: Deadline | None = None) -> list[OrderEntry]:
        """All decodable entries of today's partition in queue order."""
        return [entry for _index, _member, entry in self._scan(self.partition_key(), deadline)]

    def locate(self, order_id: str, *, deadline: Deadline | None = None) -> OrderPosition:
        """Find `order_id` and the load queued ahead of it.

        `position` is the index in the sorted set, so malformed members still
        take a slot; the preceding sums only cover decodable entries.
        """
        preceding_items = 0
        preceding_orders = 0
        for index, _member, entry in self._scan(self.partition_key(), deadline):
            if entry.order_id == order_id:
                return OrderPosition(
                    position=index,
                    entry=entry,
                    preceding_items=preceding_items,
                    preceding_orders=preceding_orders,
                )
            preceding_items += entry.item_count
            preceding_orders += 1
        raise OrderNotFound(order_id)

    def merchant_snapshot(self, merchant_id: str, *, deadline: Deadline | None = None) -> QueueStatus:
        """Count and item total of `merchant_id`'s orders in today's partition."""
        count = 0
        items = 0
        for _index, _member, entry in self._scan(self.partition_key(), deadline):
            if entry.merchant_id == merchant_id:
                count += 1
                items += entry.item_count
        return QueueStatus(order_count=count, total_items=items)

    def depth(self, *, deadline: Deadline | None = None) -> QueueStatus:
        """Queue depth across all merchants."""
        count = 0
        items = 0
        for _index, _member, entry in self._scan(self.partition_key(), deadline):
            count += 1
            items += entry.item_count
        return QueueStatus(order_count=count, total_items=items)

    def _scan(self, key: str, deadline: Deadline | None) -> Iterator[tuple[int, str, OrderEntry]]:
        """Yield (raw index, member, entry) for every decodable member."""
        check(deadline)
        rows = self.store.zrange_with_scores(key)
        for index, (member, score) in enumerate(rows):
            check(deadline)
            try:
                entry = decode_entry(member, score)
            except InvalidOrder as e:
                log.warning("skipping malformed member in %s: %s", key, e)
                continue
            yield index, member, entry
