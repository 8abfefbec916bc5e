"""Redis implementation of the store port, built on redis-py.

Partitions are sorted sets and merchant statistics are hashes. Every
`RedisError` is surfaced as `StoreUnavailable`; nothing is retried here
except the optimistic `WATCH`/`MULTI` loop of `update_hash`, which is how
concurrent completions for the same merchant are serialized.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import timedelta
from typing import Iterator, Mapping, Sequence

import redis
from redis.client import Pipeline

from .errors import StoreUnavailable
from .store import HashMerge

log = logging.getLogger(__name__)


@contextmanager
def _store_errors(op: str) -> Iterator[None]:
    try:
        yield
    except redis.exceptions.RedisError as e:
        log.warning("redis %s failed: %s", op, e)
        raise StoreUnavailable(f"redis {op} failed: {e}") from e


class RedisStore:
    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    @classmethod
    def from_url(cls, url: str, *, timeout: float = 2.0) -> "RedisStore":
        client = redis.Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
        )
        return cls(client)

    def close(self) -> None:
        self._redis.close()

    # -------------------- ordered collection --------------------

    def zadd(self, key: str, member: str, score: float) -> None:
        with _store_errors("ZADD"):
            self._redis.zadd(key, {member: score})

    def zadd_with_expiry(self, key: str, member: str, score: float, ttl: timedelta) -> None:
        # MULTI/EXEC: either both commands apply or neither does.
        with _store_errors("ZADD+EXPIRE"):
            pipe = self._redis.pipeline(transaction=True)
            pipe.zadd(key, {member: score})
            pipe.expire(key, ttl)
            pipe.execute()

    def zrange_with_scores(self, key: str) -> list[tuple[str, float]]:
        with _store_errors("ZRANGE"):
            rows = self._redis.zrange(key, 0, -1, withscores=True)
        return [(member, float(score)) for member, score in rows]

    def zrem(self, key: str, member: str) -> int:
        with _store_errors("ZREM"):
            return int(self._redis.zrem(key, member))

    # -------------------- hash --------------------

    def hmget(self, key: str, fields: Sequence[str]) -> list[str | None]:
        with _store_errors("HMGET"):
            return list(self._redis.hmget(key, list(fields)))

    def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        with _store_errors("HSET"):
            self._redis.hset(key, mapping=dict(mapping))

    def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        with _store_errors("HINCRBY"):
            return int(self._redis.hincrby(key, field, amount))

    def update_hash(self, key: str, fields: Sequence[str], merge: HashMerge, ttl: timedelta) -> dict[str, str]:
        field_list = list(fields)

        def apply(pipe: Pipeline) -> dict[str, str]:
            # Immediate mode while WATCHing: this read happens before MULTI.
            current = dict(zip(field_list, pipe.hmget(key, field_list)))
            updated = {k: str(v) for k, v in merge(current).items()}
            pipe.multi()
            pipe.hset(key, mapping=updated)
            pipe.expire(key, ttl)
            return updated

        with _store_errors("HSET (transaction)"):
            return self._redis.transaction(apply, key, value_from_callable=True)

    # -------------------- expiry --------------------

    def expire(self, key: str, ttl: timedelta) -> None:
        with _store_errors("EXPIRE"):
            self._redis.expire(key, ttl)
