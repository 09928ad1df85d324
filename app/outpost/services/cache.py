"""Scope-aware read-through cache.

Every key embeds the resolved scope of the caller, so two principals that
see different rows never share an entry. The cache is best-effort: any
failure of the backing store or of serialization is logged and the caller
falls through to the repository.
"""

from __future__ import annotations

import fnmatch
import hashlib
import json
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Iterable, Protocol

import redis

from app.outpost.core.config import settings
from app.outpost.core.logging import log_json
from app.outpost.core.metrics import metrics
from app.outpost.core.request_stats import record_cache_lookup
from app.outpost.core.scope import ResourceKind, ScopeFilter

logger = logging.getLogger("outpost.cache")


class TTLCategory(str, Enum):
    CATALOG = "catalog"
    LOCATIONS = "locations"
    TRANSACTIONS = "transactions"
    ACCOUNTS = "accounts"
    STATIC = "static"

    @property
    def seconds(self) -> int:
        return {
            TTLCategory.CATALOG: settings.CACHE_TTL_CATALOG,
            TTLCategory.LOCATIONS: settings.CACHE_TTL_LOCATIONS,
            TTLCategory.TRANSACTIONS: settings.CACHE_TTL_TRANSACTIONS,
            TTLCategory.ACCOUNTS: settings.CACHE_TTL_ACCOUNTS,
            TTLCategory.STATIC: settings.CACHE_TTL_STATIC,
        }[self]


TTL_BY_KIND = {
    ResourceKind.CATALOG_ITEM: TTLCategory.CATALOG,
    ResourceKind.LOCATION: TTLCategory.LOCATIONS,
    ResourceKind.TRANSACTION: TTLCategory.TRANSACTIONS,
    ResourceKind.DASHBOARD: TTLCategory.TRANSACTIONS,
    ResourceKind.ACCOUNT: TTLCategory.ACCOUNTS,
    ResourceKind.REGION: TTLCategory.STATIC,
}


class CacheBackend(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None: ...

    def delete_matching(self, pattern: str) -> int: ...


class RedisCacheBackend:
    def __init__(self, client: "redis.Redis", *, prefix: str = ""):
        self.client = client
        self.prefix = f"{prefix}:" if prefix else ""

    @classmethod
    def from_url(cls, url: str, *, prefix: str = "", socket_timeout: float | None = None) -> "RedisCacheBackend":
        client = redis.Redis.from_url(
            url,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client, prefix=prefix)

    def get(self, key: str) -> bytes | None:
        return self.client.get(self.prefix + key)

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        self.client.set(self.prefix + key, value, ex=ttl_seconds)

    def delete_matching(self, pattern: str) -> int:
        deleted = 0
        batch: list[bytes] = []
        for name in self.client.scan_iter(match=self.prefix + pattern, count=500):
            batch.append(name)
            if len(batch) >= 500:
                deleted += self.client.delete(*batch)
                batch = []
        if batch:
            deleted += self.client.delete(*batch)
        return deleted


class MemoryCacheBackend:
    """Process-local backing store with the same contract as the Redis one."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[float, bytes]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> bytes | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: bytes, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl_seconds, value)

    def delete_matching(self, pattern: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
            for key in doomed:
                del self._entries[key]
        return len(doomed)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._entries)


class CacheKeys:
    """Deterministic cache keys of the form ``<namespace>:<scope>:<identity>``."""

    @staticmethod
    def entity(kind: ResourceKind, scope: ScopeFilter, entity_id: str) -> str:
        return f"{kind.value}:{scope.token}:id={entity_id}"

    @staticmethod
    def collection(kind: ResourceKind, scope: ScopeFilter, filters: dict[str, Any] | None = None) -> str:
        encoded = json.dumps(filters or {}, sort_keys=True, default=str, separators=(",", ":"))
        digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()[:16]
        return f"{kind.value}s:{scope.token}:{digest}"

    @staticmethod
    def invalidation_patterns(
        kind: ResourceKind,
        *,
        entity_id: str | None = None,
        location_id: str | None = None,
        region_id: str | None = None,
    ) -> list[str]:
        """Patterns for every key a write to one row of ``kind`` could have affected.

        Only the row's own location, its region and the unrestricted scope are
        touched; sibling locations keep their entries.
        """
        scopes = [ScopeFilter.unrestricted()]
        if location_id:
            scopes.append(ScopeFilter.for_location(location_id))
        if region_id:
            scopes.append(ScopeFilter.for_region(region_id))
        patterns = [f"{kind.value}s:{scope.token}:*" for scope in scopes]
        if entity_id:
            patterns.append(f"{kind.value}:*:id={entity_id}")
        return patterns

    @staticmethod
    def all_entities(kind: ResourceKind) -> str:
        return f"{kind.value}:*"


def _serialize(value: Any) -> bytes:
    return json.dumps(value, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _deserialize(payload: bytes) -> Any:
    return json.loads(payload)


class CacheLayer:
    def __init__(self, backend: CacheBackend | None):
        self.backend = backend

    @property
    def available(self) -> bool:
        return self.backend is not None

    def with_cache(self, key: str, ttl_category: TTLCategory, loader: Callable[[], Any]) -> Any:
        """Return the cached payload for ``key`` or load, store and return it.

        The loader's result must be JSON-serializable. Hits and misses both
        return the deserialized stored form, so repeated calls are identical.
        """
        if self.backend is None:
            return loader()

        cached = self._get(key)
        if cached is not None:
            try:
                value = _deserialize(cached)
            except ValueError:
                logger.warning("Discarding undecodable cache entry %s", key)
                metrics.increment_cache_error("decode")
            else:
                metrics.increment_cache_hit(ttl_category.value)
                record_cache_lookup(hit=True)
                log_json(logger, {"event": "cache_hit", "key": key}, level=logging.DEBUG)
                return value

        metrics.increment_cache_miss(ttl_category.value)
        record_cache_lookup(hit=False)
        log_json(logger, {"event": "cache_miss", "key": key}, level=logging.DEBUG)
        result = loader()
        try:
            payload = _serialize(result)
        except (TypeError, ValueError):
            logger.warning("Cache payload for %s is not serializable; skipping store", key, exc_info=True)
            metrics.increment_cache_error("encode")
            return result
        self._set(key, payload, ttl_category.seconds)
        return _deserialize(payload)

    def invalidate(self, patterns: Iterable[str]) -> int:
        if self.backend is None:
            return 0
        removed = 0
        for pattern in dict.fromkeys(patterns):
            try:
                removed += self.backend.delete_matching(pattern)
            except Exception:
                logger.warning("Cache invalidation failed for %s; entry left to expire", pattern, exc_info=True)
                metrics.increment_cache_error("invalidate")
        metrics.increment_cache_invalidated(removed)
        log_json(logger, {"event": "cache_invalidate", "removed": removed}, level=logging.DEBUG)
        return removed

    def _get(self, key: str) -> bytes | None:
        try:
            return self.backend.get(key)
        except Exception:
            logger.warning("Cache read failed for %s; falling through", key, exc_info=True)
            metrics.increment_cache_error("get")
            return None

    def _set(self, key: str, payload: bytes, ttl_seconds: int) -> None:
        try:
            self.backend.set(key, payload, ttl_seconds)
        except Exception:
            logger.warning("Cache write failed for %s", key, exc_info=True)
            metrics.increment_cache_error("set")


def build_cache_backend(kind: str | None = None) -> CacheBackend | None:
    backend = (kind or settings.CACHE_BACKEND).strip().lower()
    if backend == "redis":
        return RedisCacheBackend.from_url(
            settings.REDIS_URL,
            prefix=settings.CACHE_KEY_PREFIX,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        )
    if backend == "memory":
        return MemoryCacheBackend()
    return None
