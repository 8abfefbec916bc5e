from __future__ import annotations

# Processing-time estimator.
#
# We model the time a merchant needs for one order as:
#   order_time = base_process_time + item_time * item_count
#
# item_time is learned per merchant as a running average of observed
# (elapsed / item_count) samples. Until a merchant has at least
# `min_sample_orders` completions the shared default item time is used
# instead, so one atypical early order cannot skew every estimate.

import logging
from datetime import timedelta

from .config import QueueSettings
from .deadline import Deadline, check
from .errors import InvalidOrder
from .keys import AVG_ITEM_TIME_FIELD, PROCESSED_ORDERS_FIELD, stats_key
from .models import MerchantStats
from .store import QueueStore

log = logging.getLogger(__name__)

_MS = timedelta(milliseconds=1)


def compute_wait(*, items: int, orders: int, item_time: timedelta, base_time: timedelta) -> timedelta:
    """Time to work through `orders` orders holding `items` items in total.

    Args:
        items: total item count (>= 0).
        orders: number of orders (>= 0).
        item_time: per-item processing time (>= 0).
        base_time: fixed per-order overhead (>= 0).
    """
    if items < 0:
        raise ValueError("items must be >= 0")
    if orders < 0:
        raise ValueError("orders must be >= 0")
    if item_time < timedelta(0) or base_time < timedelta(0):
        raise ValueError("processing times must be >= 0")

    return item_time * items + base_time * orders


def _parse_int(raw: str | None, *, field: str, merchant_id: str) -> int:
    if raw is None:
        return 0
    try:
        return int(raw)
    except ValueError:
        log.warning("merchant %s has unparsable %s=%r; treating as 0", merchant_id, field, raw)
        return 0


class Estimator:
    def __init__(self, store: QueueStore, settings: QueueSettings | None = None) -> None:
        self.store = store
        self.settings = settings or QueueSettings()

    # -------------------- statistics --------------------

    def stats(self, merchant_id: str, *, deadline: Deadline | None = None) -> MerchantStats:
        """Historical statistics for `merchant_id` (zeros when there is no history)."""
        check(deadline)
        avg_raw, count_raw = self.store.hmget(stats_key(merchant_id), [AVG_ITEM_TIME_FIELD, PROCESSED_ORDERS_FIELD])
        avg_ms = _parse_int(avg_raw, field=AVG_ITEM_TIME_FIELD, merchant_id=merchant_id)
        processed = _parse_int(count_raw, field=PROCESSED_ORDERS_FIELD, merchant_id=merchant_id)
        return MerchantStats(avg_item_time=timedelta(milliseconds=avg_ms), processed_orders=processed)

    def effective_item_time(self, stats: MerchantStats) -> timedelta:
        if stats.processed_orders < self.settings.min_sample_orders:
            return self.settings.default_item_time
        return stats.avg_item_time

    def record_completion(
        self,
        merchant_id: str,
        item_count: int,
        elapsed: timedelta,
        *,
        deadline: Deadline | None = None,
    ) -> MerchantStats:
        """Fold one finished order into the merchant's running average.

        new_avg = (old_avg * n + elapsed / item_count) / (n + 1)

        The read-modify-write runs atomically in the store, so concurrent
        completions for the same merchant cannot drop each other's sample.
        """
        if item_count <= 0:
            raise InvalidOrder(f"cannot record completion with item_count={item_count}")
        if elapsed < timedelta(0):
            log.warning("negative elapsed %s for merchant %s; clamping to 0", elapsed, merchant_id)
            elapsed = timedelta(0)

        sample_ms = (elapsed / _MS) / item_count

        def merge(current: dict[str, str | None]) -> dict[str, str]:
            avg_ms = _parse_int(current.get(AVG_ITEM_TIME_FIELD), field=AVG_ITEM_TIME_FIELD, merchant_id=merchant_id)
            n = _parse_int(current.get(PROCESSED_ORDERS_FIELD), field=PROCESSED_ORDERS_FIELD, merchant_id=merchant_id)
            new_avg = sample_ms if n == 0 else (avg_ms * n + sample_ms) / (n + 1)
            return {AVG_ITEM_TIME_FIELD: str(int(new_avg)), PROCESSED_ORDERS_FIELD: str(n + 1)}

        check(deadline)
        updated = self.store.update_hash(
            stats_key(merchant_id),
            [AVG_ITEM_TIME_FIELD, PROCESSED_ORDERS_FIELD],
            merge,
            self.settings.stats_ttl,
        )
        stats = MerchantStats(
            avg_item_time=timedelta(milliseconds=int(updated[AVG_ITEM_TIME_FIELD])),
            processed_orders=int(updated[PROCESSED_ORDERS_FIELD]),
        )
        log.info(
            "merchant %s: %d items in %s, avg item time now %s over %d orders",
            merchant_id,
            item_count,
            elapsed,
            stats.avg_item_time,
            stats.processed_orders,
        )
        return stats

    # -------------------- estimates --------------------

    def estimate_wait(
        self,
        merchant_id: str,
        preceding_items: int,
        preceding_orders: int,
        *,
        deadline: Deadline | None = None,
    ) -> timedelta:
        """Wait caused by the load queued ahead of an order."""
        item_time = self.effective_item_time(self.stats(merchant_id, deadline=deadline))
        return compute_wait(
            items=preceding_items,
            orders=preceding_orders,
            item_time=item_time,
            base_time=self.settings.base_process_time,
        )

    def estimate_new_order_wait(
        self,
        merchant_id: str,
        current_items: int,
        current_orders: int,
        new_order_items: int,
        *,
        deadline: Deadline | None = None,
    ) -> timedelta:
        """Total wait for an order that is not queued yet, including its own processing.

        Assumes the order lands at the tail; no slot is reserved, so
        enqueues in between are not accounted for. A fixed buffer is applied
        on top.
        """
        if new_order_items < 0:
            raise ValueError("new_order_items must be >= 0")
        item_time = self.effective_item_time(self.stats(merchant_id, deadline=deadline))
        base = self.settings.base_process_time
        current = compute_wait(items=current_items, orders=current_orders, item_time=item_time, base_time=base)
        own = compute_wait(items=new_order_items, orders=1, item_time=item_time, base_time=base)
        return (current + own) * self.settings.new_order_buffer
