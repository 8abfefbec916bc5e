from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import redis

from merchant_queue.errors import StoreUnavailable
from merchant_queue.redis_store import RedisStore


@pytest.fixture
def client():
    return MagicMock()


def test_zadd_and_expire(client):
    store = RedisStore(client)
    store.zadd("queue:2026-10-18", "member", 12.0)
    store.expire("queue:2026-10-18", timedelta(hours=48))
    client.zadd.assert_called_once_with("queue:2026-10-18", {"member": 12.0})
    client.expire.assert_called_once_with("queue:2026-10-18", timedelta(hours=48))


def test_zadd_with_expiry_is_one_transaction(client):
    pipe = client.pipeline.return_value
    RedisStore(client).zadd_with_expiry("queue:2026-10-18", "member", 12.0, timedelta(hours=48))

    client.pipeline.assert_called_once_with(transaction=True)
    pipe.zadd.assert_called_once_with("queue:2026-10-18", {"member": 12.0})
    pipe.expire.assert_called_once_with("queue:2026-10-18", timedelta(hours=48))
    pipe.execute.assert_called_once()
    client.zadd.assert_not_called()


def test_failed_zadd_with_expiry_raises_store_unavailable(client):
    client.pipeline.return_value.execute.side_effect = redis.exceptions.TimeoutError("timed out")
    with pytest.raises(StoreUnavailable):
        RedisStore(client).zadd_with_expiry("q", "m", 1.0, timedelta(hours=48))


def test_zrange_with_scores(client):
    client.zrange.return_value = [("a", 1), ("b", 2.5)]
    assert RedisStore(client).zrange_with_scores("q") == [("a", 1.0), ("b", 2.5)]
    client.zrange.assert_called_once_with("q", 0, -1, withscores=True)


def test_hmget(client):
    client.hmget.return_value = ["120000", None]
    assert RedisStore(client).hmget("h", ("a", "b")) == ["120000", None]
    client.hmget.assert_called_once_with("h", ["a", "b"])


def test_update_hash_runs_in_transaction(client):
    pipe = MagicMock()
    pipe.hmget.return_value = ["120000", "1"]
    client.transaction.side_effect = lambda func, *keys, value_from_callable: func(pipe)

    def merge(current):
        assert current == {"avg": "120000", "n": "1"}
        return {"avg": "90000", "n": "2"}

    updated = RedisStore(client).update_hash("h", ["avg", "n"], merge, timedelta(days=30))

    assert updated == {"avg": "90000", "n": "2"}
    assert client.transaction.call_args.args[1] == "h"
    pipe.multi.assert_called_once()
    pipe.hset.assert_called_once_with("h", mapping={"avg": "90000", "n": "2"})
    pipe.expire.assert_called_once_with("h", timedelta(days=30))


@pytest.mark.parametrize(
    "call",
    [
        lambda s: s.zadd("q", "m", 1.0),
        lambda s: s.zadd_with_expiry("q", "m", 1.0, timedelta(seconds=1)),
        lambda s: s.zrange_with_scores("q"),
        lambda s: s.zrem("q", "m"),
        lambda s: s.hmget("h", ["a"]),
        lambda s: s.hset("h", {"a": "1"}),
        lambda s: s.hincrby("h", "a"),
        lambda s: s.expire("q", timedelta(seconds=1)),
        lambda s: s.update_hash("h", ["a"], lambda cur: cur, timedelta(seconds=1)),
    ],
)
def test_redis_errors_become_store_unavailable(client, call):
    err = redis.exceptions.ConnectionError("connection refused")
    for name in ("zadd", "zrange", "zrem", "hmget", "hset", "hincrby", "expire", "transaction", "pipeline"):
        getattr(client, name).side_effect = err

    with pytest.raises(StoreUnavailable) as exc_info:
        call(RedisStore(client))
    assert exc_info.value.__cause__ is err
