"""Tag-aware result cache used by the pagination pipeline.

Entries are keyed by a :class:`CacheKey` derived from the semantic request
parameters and labelled with tags (by default the table name) so that a write
to a table can drop every cached page for it in one call.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol, TypeVar

from querypager.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheKey:
    """Structured cache key for one pipeline run."""

    table: str
    page: int
    search: str | None
    filter: str | None
    range_column: str | None
    range_start: str | None
    range_end: str | None
    order_by: str
    order: str
    limit: int
    export: str
    column_filters: tuple[tuple[str, str], ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Column filters are compared by content, not declaration order
        object.__setattr__(self, "column_filters", tuple(sorted(self.column_filters)))

    def serialize(self) -> str:
        return json.dumps(asdict(self), sort_keys=True, separators=(",", ":"))

    def digest(self) -> str:
        return "pagination:" + hashlib.sha256(self.serialize().encode("utf-8")).hexdigest()


class CacheStore(Protocol):
    """Compute-if-absent store with TTL and tag-based invalidation."""

    async def remember(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[T]],
        tags: Iterable[str] = (),
    ) -> T: ...

    async def forget(self, key: str) -> bool: ...

    async def flush_tags(self, tags: Iterable[str]) -> int: ...

    async def clear(self) -> None: ...


@dataclass
class _Entry:
    value: Any
    expires_at: float
    tags: frozenset[str]


class MemoryCacheStore:
    """In-process cache store.

    A per-key ``asyncio.Lock`` guarantees one computation per key while the
    entry is live. The oldest entries are evicted once ``max_entries`` is hit.
    """

    def __init__(
        self,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._entries: OrderedDict[str, _Entry] = OrderedDict()
        self._tags: dict[str, set[str]] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._max_entries = max_entries
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._drop(key)
            return None
        return entry

    def _drop(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tags[tag]

    def _store(self, key: str, value: Any, ttl: int, tags: frozenset[str]) -> None:
        self._drop(key)
        while len(self._entries) >= self._max_entries:
            oldest = next(iter(self._entries))
            logger.debug("Cache full, evicting %s", oldest)
            self._drop(oldest)
        self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl, tags=tags)
        for tag in tags:
            self._tags.setdefault(tag, set()).add(key)

    async def remember(
        self,
        key: str,
        ttl: int,
        compute: Callable[[], Awaitable[T]],
        tags: Iterable[str] = (),
    ) -> T:
        entry = self._live(key)
        if entry is not None:
            logger.debug("Cache hit %s", key)
            return entry.value

        lock = self._locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                # Another waiter may have filled the entry while we were blocked
                entry = self._live(key)
                if entry is not None:
                    logger.debug("Cache hit %s", key)
                    return entry.value
                logger.debug("Cache miss %s", key)
                value = await compute()
                self._store(key, value, ttl, frozenset(tags))
        finally:
            if self._locks.get(key) is lock and not lock.locked():
                del self._locks[key]
        return value

    async def get(self, key: str) -> Any | None:
        entry = self._live(key)
        return entry.value if entry is not None else None

    async def forget(self, key: str) -> bool:
        existed = key in self._entries
        self._drop(key)
        return existed

    async def flush_tags(self, tags: Iterable[str]) -> int:
        """Drop every entry carrying any of ``tags``; return how many were removed."""
        tags = list(tags)
        keys: set[str] = set()
        for tag in tags:
            keys |= self._tags.get(tag, set())
        for key in keys:
            self._drop(key)
        if keys:
            logger.debug("Flushed %d cache entries for tags %s", len(keys), sorted(tags))
        return len(keys)

    async def clear(self) -> None:
        self._entries.clear()
        self._tags.clear()
        self._locks.clear()


cache_store = MemoryCacheStore(max_entries=settings.cache_max_entries)


def get_cache() -> CacheStore:
    """FastAPI dependency returning the process-wide cache store."""
    return cache_store
