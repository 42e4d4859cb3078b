"""
cache.py — In-memory catalog cache with single-flight loading.

Completed resolutions are kept in a ``cachetools.TTLCache`` keyed by
(category, hashed credential).  While a key is loading, every caller for
that key awaits the same task instead of issuing its own network calls.

  • a caller cancelling only stops *its* wait; the shared load continues
    while anyone else is still waiting, and is cancelled with the last one
  • failures are never cached, nor are resolutions that fell back to
    another category
  • nothing is persisted; a new process starts cold

Dependencies: cachetools (TTL cache), xxhash (credential hashing)
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

import xxhash
from cachetools import TTLCache

from .config import settings
from .errors import CatalogCancelledError
from .models import CatalogResolution, ModelCategory
from .retry import run_cancellable

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[CatalogResolution]]


def _fast_hash(data: str) -> str:
    return xxhash.xxh64(data.encode()).hexdigest()


@dataclass
class _InFlight:
    task: "asyncio.Future[CatalogResolution]"
    waiters: int = 0


class CatalogCache:
    """
    Usage::

        cache = CatalogCache()
        resolution = await cache.get_or_load(
            "premium", api_key, lambda: orchestrator.resolve("premium", api_key), cancel
        )
    """

    def __init__(self, ttl: Optional[float] = None, maxsize: Optional[int] = None) -> None:
        self._ttl = float(ttl if ttl is not None else settings.catalog_cache_ttl)
        self._store: TTLCache = TTLCache(
            maxsize=maxsize or settings.catalog_cache_maxsize,
            ttl=self._ttl,
        )
        self._inflight: Dict[str, _InFlight] = {}

        # Stats
        self._hits = 0
        self._misses = 0
        self._shared = 0

    # ── Key construction ───────────────────────────────────────────────────────

    @staticmethod
    def make_key(category: ModelCategory | str, credential: str) -> str:
        """Credentials are hashed so they never sit in memory as keys."""
        return f"catalog:{ModelCategory(category).value}:{_fast_hash(credential)}"

    # ── Read ───────────────────────────────────────────────────────────────────

    def get(self, category: ModelCategory | str, credential: str) -> Optional[CatalogResolution]:
        return self._store.get(self.make_key(category, credential))

    async def get_or_load(
        self,
        category: ModelCategory | str,
        credential: str,
        loader: Loader,
        cancel: Optional[asyncio.Event] = None,
        force_refresh: bool = False,
    ) -> CatalogResolution:
        if cancel is not None and cancel.is_set():
            raise CatalogCancelledError()

        key = self.make_key(category, credential)
        if not force_refresh:
            hit = self._store.get(key)
            if hit is not None:
                self._hits += 1
                return hit

        entry = self._inflight.get(key)
        if entry is None:
            self._misses += 1
            entry = _InFlight(task=asyncio.ensure_future(loader()))
            self._inflight[key] = entry
            entry.task.add_done_callback(lambda t, k=key: self._settle(k, t))
        else:
            self._shared += 1
            logger.debug("Joining in-flight catalog load for %s", key.rsplit(":", 1)[0])

        entry.waiters += 1
        try:
            return await run_cancellable(lambda: asyncio.shield(entry.task), cancel)
        except (CatalogCancelledError, asyncio.CancelledError):
            if entry.waiters == 1 and not entry.task.done():
                logger.debug("Last waiter cancelled; cancelling catalog load")
                entry.task.cancel()
            raise
        finally:
            entry.waiters -= 1

    def _settle(self, key: str, task: "asyncio.Future[CatalogResolution]") -> None:
        current = self._inflight.get(key)
        if current is not None and current.task is task:
            del self._inflight[key]
        if task.cancelled() or task.exception() is not None:
            return
        result = task.result()
        if result.fell_back:
            # the preferred category is retried on the next call
            logger.debug("Not caching fallback resolution for %s", key.rsplit(":", 1)[0])
            return
        self._store[key] = result

    # ── Write ──────────────────────────────────────────────────────────────────

    def invalidate(self, category: ModelCategory | str, credential: str) -> None:
        self._store.pop(self.make_key(category, credential), None)

    def clear(self) -> None:
        self._store.clear()
        logger.info("Catalog cache cleared")

    # ── Stats ──────────────────────────────────────────────────────────────────

    @property
    def in_flight(self) -> int:
        return len(self._inflight)

    @property
    def stats(self) -> Dict[str, Any]:
        total = self._hits + self._misses
        hit_rate = self._hits / total if total else 0.0
        return {
            "hits":      self._hits,
            "misses":    self._misses,
            "shared":    self._shared,
            "entries":   len(self._store),
            "in_flight": len(self._inflight),
            "hit_rate":  float(round(hit_rate * 10000) / 10000),
            "ttl":       self._ttl,
        }
