"""Order record codec.

Each queued order is stored as one sorted-set member. Members are written as
a compact, versioned JSON record:

    {"v":1,"m":"<merchant>","o":"<order>","n":<items>,"t":<epoch seconds>}

Identifiers can contain any character. Members written by the previous
system use the delimited token `<merchant>:<order>:<items>:<epoch seconds>`;
those are still decoded so a partition can be shared during migration, but
they are never written.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from .errors import InvalidOrder
from .models import OrderEntry

FORMAT_VERSION = 1


def encode_entry(entry: OrderEntry) -> str:
    if entry.enqueue_time is None:
        raise InvalidOrder(f"order {entry.order_id} has no enqueue time")
    record = {
        "v": FORMAT_VERSION,
        "m": entry.merchant_id,
        "o": entry.order_id,
        "n": entry.item_count,
        "t": int(entry.enqueue_time.timestamp()),
    }
    return json.dumps(record, separators=(",", ":"))


def decode_entry(member: str | bytes, score: float | None = None) -> OrderEntry:
    """Parse a stored member back into an `OrderEntry`.

    Raises:
        InvalidOrder: the member is neither a known record version nor a
            well-formed legacy token.
    """
    if isinstance(member, bytes):
        try:
            member = member.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidOrder("member is not valid utf-8") from e

    if member.startswith("{"):
        merchant_id, order_id, items, epoch = _decode_record(member)
    else:
        merchant_id, order_id, items, epoch = _decode_legacy(member)

    if not merchant_id or not order_id:
        raise InvalidOrder(f"empty identifier in member {member!r}")
    if items <= 0:
        raise InvalidOrder(f"non-positive item count in member {member!r}")

    enqueue_time = datetime.fromtimestamp(epoch, tz=timezone.utc)
    timestamp = int(score) if score is not None else epoch * 1_000_000_000
    return OrderEntry(
        merchant_id=merchant_id,
        order_id=order_id,
        item_count=items,
        enqueue_timestamp=timestamp,
        enqueue_time=enqueue_time,
    )


def _decode_record(member: str) -> tuple[str, str, int, int]:
    try:
        data = json.loads(member)
    except ValueError as e:
        raise InvalidOrder(f"undecodable member {member!r}") from e
    if not isinstance(data, dict):
        raise InvalidOrder(f"member is not a record: {member!r}")
    if data.get("v") != FORMAT_VERSION:
        raise InvalidOrder(f"unsupported record version {data.get('v')!r}")

    merchant_id, order_id = data.get("m"), data.get("o")
    items, epoch = data.get("n"), data.get("t")
    if not isinstance(merchant_id, str) or not isinstance(order_id, str):
        raise InvalidOrder(f"missing identifiers in member {member!r}")
    # bool is an int subclass; reject it explicitly
    for value in (items, epoch):
        if not isinstance(value, int) or isinstance(value, bool):
            raise InvalidOrder(f"non-integer field in member {member!r}")
    return merchant_id, order_id, items, epoch


def _decode_legacy(member: str) -> tuple[str, str, int, int]:
    merchant_id, sep, rest = member.partition(":")
    parts = rest.rsplit(":", 2)
    if not sep or len(parts) != 3:
        raise InvalidOrder(f"invalid order info format: {member!r}")
    order_id, items_raw, epoch_raw = parts
    try:
        return merchant_id, order_id, int(items_raw), int(epoch_raw)
    except ValueError as e:
        raise InvalidOrder(f"invalid order info format: {member!r}") from e
