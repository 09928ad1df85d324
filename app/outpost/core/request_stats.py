"""Per-request counters shared between the repository, the cache and the request log.

The middleware opens a ``RequestStats`` for each request. Code running
outside a request (tests, scripts) records nothing.
"""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass


@dataclass
class RequestStats:
    repository_ms: float = 0.0
    repository_statements: int = 0
    cache_hits: int = 0
    cache_misses: int = 0


_request_stats: ContextVar[RequestStats | None] = ContextVar("request_stats", default=None)


def open_request_stats() -> object:
    return _request_stats.set(RequestStats())


def close_request_stats(token: object) -> None:
    _request_stats.reset(token)


def current_request_stats() -> RequestStats | None:
    return _request_stats.get()


def record_statement(elapsed_ms: float) -> None:
    stats = _request_stats.get()
    if stats is None:
        return
    stats.repository_ms += elapsed_ms
    stats.repository_statements += 1


def record_cache_lookup(hit: bool) -> None:
    stats = _request_stats.get()
    if stats is None:
        return
    if hit:
        stats.cache_hits += 1
    else:
        stats.cache_misses += 1
