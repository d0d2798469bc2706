"""
Key-Value Store

Minimal string store with per-key TTL, backing the vector and answer caches.

Backends:
- InMemoryStore: process-local, used in tests and single-process deployments
- RedisStore: shared Redis instance

Write policy (both backends): put() removes an existing key first so the new
value is written with set-if-absent semantics and always gets a fresh TTL.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Protocol, Tuple

import redis

from .config import CacheConfig

logger = logging.getLogger("reddisearch.common.kv_store")


class KeyValueStore(Protocol):
    """Operations the caches need from a key-value store"""

    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str, ttl: float) -> bool: ...

    def delete(self, key: str) -> None: ...

    def clear(self, prefix: str) -> int: ...

    def count(self, prefix: str) -> int: ...


class InMemoryStore:
    """Thread-safe dict store with expiry against an injectable clock"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str) -> Optional[str]:
        entry = self._data.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._data[key]
            return None
        return value

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live(key)

    def put(self, key: str, value: str, ttl: float) -> bool:
        with self._lock:
            self._data.pop(key, None)
            self._data[key] = (value, self._clock() + ttl)
            return True

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def clear(self, prefix: str) -> int:
        with self._lock:
            keys = [k for k in self._data if k.startswith(prefix)]
            for k in keys:
                del self._data[k]
            return len(keys)

    def count(self, prefix: str) -> int:
        with self._lock:
            return sum(1 for k in list(self._data) if k.startswith(prefix) and self._live(k) is not None)


class RedisStore:
    """Redis-backed store"""

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisStore":
        return cls(redis.Redis.from_url(url, decode_responses=True))

    def get(self, key: str) -> Optional[str]:
        return self._client.get(key)

    def put(self, key: str, value: str, ttl: float) -> bool:
        if self._client.exists(key):
            self._client.delete(key)
        # NX: a concurrent writer that got in between wins; EX applies only on creation
        return bool(self._client.set(key, value, nx=True, ex=max(1, int(ttl))))

    def delete(self, key: str) -> None:
        self._client.delete(key)

    def clear(self, prefix: str) -> int:
        keys = list(self._client.scan_iter(match=f"{prefix}*"))
        if keys:
            self._client.delete(*keys)
        return len(keys)

    def count(self, prefix: str) -> int:
        return sum(1 for _ in self._client.scan_iter(match=f"{prefix}*"))


def create_store(config: CacheConfig) -> KeyValueStore:
    """
    Build the store named by config.backend.

    Unknown backends fall back to the in-memory store with a warning.
    """
    backend = (config.backend or "memory").lower()

    if backend == "redis":
        logger.info("Using Redis cache at %s", config.redis_url)
        return RedisStore.from_url(config.redis_url)

    if backend != "memory":
        logger.warning("Unknown cache backend %r, using in-memory store", config.backend)
    return InMemoryStore()
