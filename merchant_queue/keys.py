"""Store key helpers.

Key names are shared with data written by the previous system and must not
change:

- `queue:<YYYY-MM-DD>`
    Sorted set of today's queued orders (score = enqueue timestamp in ns).
    The date is taken in a fixed time zone (default `Asia/Shanghai`).
- `merchant_stats:<merchant_id>`
    Hash with `avg_item_time` (milliseconds) and `processed_orders`.
"""

from __future__ import annotations

from datetime import date, datetime
from zoneinfo import ZoneInfo

AVG_ITEM_TIME_FIELD = "avg_item_time"
PROCESSED_ORDERS_FIELD = "processed_orders"


def partition_day(now: datetime, tz: str) -> date:
    """Calendar day of `now` in zone `tz` (naive datetimes are taken as UTC)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(ZoneInfo(tz)).date()


def partition_key(day: date) -> str:
    return f"queue:{day.isoformat()}"


def stats_key(merchant_id: str) -> str:
    return f"merchant_stats:{merchant_id}"
