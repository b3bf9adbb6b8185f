"""
Two-tier embedding cache.

A bounded in-process map sits in front of the durable ``EmbeddingStore``:

- ``set`` writes through to both tiers;
- ``get`` reads memory first, then the store, and promotes store hits into
  memory;
- the memory tier evicts its oldest-inserted entry once it holds
  ``max_memory_entries``; the store keeps everything until ``clear``.

Store calls run in a worker thread so the event loop keeps serving other
tasks. A per-cache lock covers every store round trip together with the
matching memory update, so concurrent tasks never observe a half-applied
``set`` or ``clear``. Failures of the durable tier are logged and the memory
tier keeps serving.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from memory_ai.config import CACHE_PRELOAD_LIMIT, MEMORY_CACHE_SIZE
from memory_ai.db import CacheEntry, EmbeddingStore
from memory_ai.errors import CacheClosedError, InvalidInputError

logger = logging.getLogger(__name__)

# per-entry bookkeeping on top of the float payload and the key text
ENTRY_OVERHEAD_BYTES = 100
FLOAT_BYTES = 8


@dataclass(frozen=True)
class CacheStats:
    size: int
    oldest_entry: Optional[datetime]
    newest_entry: Optional[datetime]
    memory_usage_estimate: int

    def to_dict(self) -> dict:
        return {
            "size": self.size,
            "oldest_entry": self.oldest_entry.isoformat() if self.oldest_entry else None,
            "newest_entry": self.newest_entry.isoformat() if self.newest_entry else None,
            "memory_usage_estimate": self.memory_usage_estimate,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _estimate_bytes(entry: CacheEntry) -> int:
    return len(entry.vector) * FLOAT_BYTES + len(entry.text.encode("utf-8")) + ENTRY_OVERHEAD_BYTES


class EmbeddingCache:
    def __init__(
        self,
        store: Optional[EmbeddingStore] = None,
        *,
        max_memory_entries: int = MEMORY_CACHE_SIZE,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if max_memory_entries < 1:
            raise ValueError("max_memory_entries must be >= 1")
        self._store = store
        self._max_memory = max_memory_entries
        self._clock = clock
        self._memory: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._closed = False
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise CacheClosedError()

    def _remember(self, entry: CacheEntry) -> None:
        self._memory[entry.text] = entry
        self._memory.move_to_end(entry.text)
        while len(self._memory) > self._max_memory:
            self._memory.popitem(last=False)

    @staticmethod
    def _check_text(text: str) -> None:
        if not isinstance(text, str):
            raise InvalidInputError("Cache key must be a string")

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------

    async def get(self, text: str) -> Optional[List[float]]:
        self._ensure_open()
        self._check_text(text)

        entry = self._memory.get(text)
        if entry is not None:
            return list(entry.vector)

        if self._store is None:
            return None

        async with self._lock:
            entry = self._memory.get(text)
            if entry is None:
                try:
                    entry = await asyncio.to_thread(self._store.get, text)
                except SQLAlchemyError:
                    logger.exception("Failed to read embedding from persistent cache")
                    return None
                if entry is None:
                    return None
                self._remember(entry)
        return list(entry.vector)

    async def set(self, text: str, vector: Sequence[float]) -> None:
        self._ensure_open()
        self._check_text(text)
        if vector is None or len(vector) == 0:
            raise InvalidInputError("Cannot cache an empty vector")

        async with self._lock:
            previous = self._memory.get(text)
            created_at = previous.created_at if previous is not None else self._clock()
            entry = CacheEntry(text=text, vector=[float(x) for x in vector], created_at=created_at)

            if self._store is not None:
                try:
                    stored_at = await asyncio.to_thread(self._store.put, entry)
                except SQLAlchemyError:
                    logger.exception("Failed to store embedding in persistent cache")
                else:
                    # an entry evicted from memory keeps its stored timestamp
                    if stored_at != created_at:
                        entry = replace(entry, created_at=stored_at)
            self._remember(entry)

    async def has(self, text: str) -> bool:
        self._ensure_open()
        self._check_text(text)
        if text in self._memory:
            return True
        if self._store is None:
            return False
        async with self._lock:
            try:
                return await asyncio.to_thread(self._store.exists, text)
            except SQLAlchemyError:
                logger.exception("Failed to check persistent cache")
                return False

    async def _count(self) -> int:
        if self._store is None:
            return len(self._memory)
        try:
            return max(len(self._memory), await asyncio.to_thread(self._store.count))
        except SQLAlchemyError:
            logger.exception("Failed to count persistent cache")
            return len(self._memory)

    async def size(self) -> int:
        """Number of distinct cached texts across both tiers."""
        self._ensure_open()
        async with self._lock:
            return await self._count()

    def memory_size(self) -> int:
        return len(self._memory)

    async def clear(self) -> None:
        self._ensure_open()
        async with self._lock:
            self._memory.clear()
            if self._store is None:
                return
            try:
                await asyncio.to_thread(self._store.clear)
            except SQLAlchemyError:
                logger.exception("Failed to clear persistent cache")

    async def get_stats(self) -> CacheStats:
        self._ensure_open()
        async with self._lock:
            oldest: Optional[datetime] = None
            newest: Optional[datetime] = None
            for entry in self._memory.values():
                if oldest is None or entry.created_at < oldest:
                    oldest = entry.created_at
                if newest is None or entry.created_at > newest:
                    newest = entry.created_at

            if self._store is not None:
                try:
                    lo, hi = await asyncio.to_thread(self._store.time_bounds)
                except SQLAlchemyError:
                    logger.exception("Failed to read persistent cache stats")
                    lo, hi = None, None
                if lo is not None and (oldest is None or lo < oldest):
                    oldest = lo
                if hi is not None and (newest is None or hi > newest):
                    newest = hi

            usage = sum(_estimate_bytes(e) for e in self._memory.values())
            return CacheStats(
                size=await self._count(),
                oldest_entry=oldest,
                newest_entry=newest,
                memory_usage_estimate=usage,
            )

    async def preload(self, limit: int = CACHE_PRELOAD_LIMIT) -> int:
        """
        Pull the ``limit`` most recently created stored entries into memory.

        Returns the number of entries loaded.
        """
        self._ensure_open()
        if self._store is None or limit <= 0:
            return 0
        async with self._lock:
            try:
                entries = await asyncio.to_thread(self._store.recent, min(limit, self._max_memory))
            except SQLAlchemyError:
                logger.exception("Failed to preload embedding cache")
                return 0

            # oldest first so the newest end up last in eviction order
            for entry in reversed(entries):
                self._remember(entry)
        logger.debug("Preloaded %d cached embeddings", len(entries))
        return len(entries)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        async with self._lock:
            self._memory.clear()
            if self._store is not None:
                self._store.dispose()

    @property
    def closed(self) -> bool:
        return self._closed
