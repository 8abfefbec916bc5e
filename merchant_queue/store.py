from __future__ import annotations

# Store port.
#
# The engine never talks to Redis directly; it consumes the small capability
# surface below. Two implementations exist:
# 1) `RedisStore` (redis_store.py) for real deployments
# 2) `MemoryStore` (here) for tests and single-process runs

import threading
import time
from datetime import timedelta
from typing import Callable, Mapping, Protocol, Sequence

HashMerge = Callable[[dict[str, "str | None"]], Mapping[str, str]]


class QueueStore(Protocol):
    # The engine calls zadd_with_expiry, zrange_with_scores, zrem, hmget and
    # update_hash. zadd, hset, hincrby and expire are the plain primitives of
    # the shared key layout, kept for tooling that works on the same keys.

    # ordered collection
    def zadd(self, key: str, member: str, score: float) -> None: ...
    def zadd_with_expiry(self, key: str, member: str, score: float, ttl: timedelta) -> None:
        """Insert `member` and reset the key's expiry in one atomic step."""
        ...

    def zrange_with_scores(self, key: str) -> list[tuple[str, float]]: ...
    def zrem(self, key: str, member: str) -> int: ...

    # hash
    def hmget(self, key: str, fields: Sequence[str]) -> list[str | None]: ...
    def hset(self, key: str, mapping: Mapping[str, str]) -> None: ...
    def hincrby(self, key: str, field: str, amount: int = 1) -> int: ...

    def update_hash(self, key: str, fields: Sequence[str], merge: HashMerge, ttl: timedelta) -> dict[str, str]:
        """Atomically read `fields`, write `merge(current)` and reset the expiry."""
        ...

    def expire(self, key: str, ttl: timedelta) -> None: ...


class MemoryStore:
    """In-process store with the same semantics as the Redis adapter.

    Expiries are enforced lazily on access.
    """

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = threading.Lock()
        self._clock = clock
        self._zsets: dict[str, dict[str, float]] = {}
        self._hashes: dict[str, dict[str, str]] = {}
        self._expires: dict[str, float] = {}

    # -------------------- ordered collection --------------------

    def zadd(self, key: str, member: str, score: float) -> None:
        with self._lock:
            self._purge(key)
            self._zsets.setdefault(key, {})[member] = float(score)

    def zadd_with_expiry(self, key: str, member: str, score: float, ttl: timedelta) -> None:
        with self._lock:
            self._purge(key)
            self._zsets.setdefault(key, {})[member] = float(score)
            self._expires[key] = self._clock() + ttl.total_seconds()

    def zrange_with_scores(self, key: str) -> list[tuple[str, float]]:
        with self._lock:
            self._purge(key)
            zset = self._zsets.get(key, {})
            # Redis orders equal scores lexicographically by member
            return sorted(zset.items(), key=lambda kv: (kv[1], kv[0]))

    def zrem(self, key: str, member: str) -> int:
        with self._lock:
            self._purge(key)
            zset = self._zsets.get(key)
            if not zset or member not in zset:
                return 0
            del zset[member]
            if not zset:
                self._drop(key)
            return 1

    # -------------------- hash --------------------

    def hmget(self, key: str, fields: Sequence[str]) -> list[str | None]:
        with self._lock:
            self._purge(key)
            h = self._hashes.get(key, {})
            return [h.get(f) for f in fields]

    def hset(self, key: str, mapping: Mapping[str, str]) -> None:
        with self._lock:
            self._purge(key)
            self._hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})

    def hincrby(self, key: str, field: str, amount: int = 1) -> int:
        with self._lock:
            self._purge(key)
            h = self._hashes.setdefault(key, {})
            try:
                value = int(h.get(field, "0")) + amount
            except ValueError as e:
                raise ValueError(f"hash value is not an integer: {key}.{field}") from e
            h[field] = str(value)
            return value

    def update_hash(self, key: str, fields: Sequence[str], merge: HashMerge, ttl: timedelta) -> dict[str, str]:
        with self._lock:
            self._purge(key)
            h = self._hashes.setdefault(key, {})
            updated = {k: str(v) for k, v in merge({f: h.get(f) for f in fields}).items()}
            h.update(updated)
            self._expires[key] = self._clock() + ttl.total_seconds()
            return updated

    # -------------------- expiry --------------------

    def expire(self, key: str, ttl: timedelta) -> None:
        with self._lock:
            self._purge(key)
            # Like Redis, EXPIRE on a missing key is a no-op.
            if key in self._zsets or key in self._hashes:
                self._expires[key] = self._clock() + ttl.total_seconds()

    def ttl(self, key: str) -> float | None:
        """Seconds until `key` expires (None when missing or persistent)."""
        with self._lock:
            self._purge(key)
            at = self._expires.get(key)
            return None if at is None else at - self._clock()

    def _purge(self, key: str) -> None:
        at = self._expires.get(key)
        if at is not None and self._clock() >= at:
            self._drop(key)

    def _drop(self, key: str) -> None:
        self._zsets.pop(key, None)
        self._hashes.pop(key, None)
        self._expires.pop(key, None)
