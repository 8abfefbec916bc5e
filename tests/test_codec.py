import json
from datetime import datetime, timezone

import pytest

from merchant_queue.codec import decode_entry, encode_entry
from merchant_queue.errors import InvalidOrder
from merchant_queue.models import OrderEntry

T0 = datetime(2026, 10, 18, 10, 0, tzinfo=timezone.utc)


def test_encoded_member_is_versioned_record():
    entry = OrderEntry("M1", "O1", 3, enqueue_timestamp=42, enqueue_time=T0)
    record = json.loads(encode_entry(entry))
    assert record == {"v": 1, "m": "M1", "o": "O1", "n": 3, "t": int(T0.timestamp())}


def test_identifiers_may_contain_the_legacy_delimiter():
    entry = OrderEntry("shop:east", "order:7", 2, enqueue_timestamp=5, enqueue_time=T0)
    decoded = decode_entry(encode_entry(entry), 5.0)
    assert decoded == entry


def test_score_becomes_enqueue_timestamp():
    entry = OrderEntry("M1", "O1", 1, enqueue_time=T0)
    assert decode_entry(encode_entry(entry), 1234.0).enqueue_timestamp == 1234


def test_decodes_legacy_token():
    epoch = int(T0.timestamp())
    entry = decode_entry(f"M1:O-9:4:{epoch}")
    assert (entry.merchant_id, entry.order_id, entry.item_count) == ("M1", "O-9", 4)
    assert entry.enqueue_time == T0
    assert entry.enqueue_timestamp == epoch * 1_000_000_000


def test_decodes_bytes_members():
    entry = OrderEntry("M1", "O1", 1, enqueue_time=T0)
    assert decode_entry(encode_entry(entry).encode("utf-8")).order_id == "O1"


@pytest.mark.parametrize(
    "member",
    [
        "garbage",
        "M1:O1:x:100",
        "M1:O1:0:100",
        "{not json",
        '{"v":2,"m":"M1","o":"O1","n":1,"t":1}',
        '{"v":1,"m":"M1","o":"O1","n":"1","t":1}',
        '{"v":1,"m":"M1","o":"O1","n":true,"t":1}',
        '{"v":1,"m":"","o":"O1","n":1,"t":1}',
        "[1, 2]",
    ],
)
def test_malformed_members_are_invalid(member):
    with pytest.raises(InvalidOrder):
        decode_entry(member)


def test_encode_requires_enqueue_time():
    with pytest.raises(InvalidOrder):
        encode_entry(OrderEntry("M1", "O1", 1))
