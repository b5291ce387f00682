"""
Expiring key-value cache for fetched feed data.

Entries are grouped by namespace (one per profile/account) and carry
their own TTL, so one cache instance can hold feed lists, historical series
and live values side by side. An optional asyncio sweeper drops expired
entries on a fixed period whether or not anything reads them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Generic, Iterator, Optional, Tuple, TypeVar

from . import canon, utils
from .exceptions import ConfigError, require
from .types import CacheEntry

logger = logging.getLogger(__name__)

T = TypeVar("T")

_Slot = Tuple[str, str]  # (namespace, key)


class ExpiringCache(Generic[T]):
    def __init__(
        self,
        ttl_ms: int = canon.SERIES_TTL_MS,
        *,
        clock: Optional[utils.Clock] = None,
        sweep_interval_s: Optional[float] = None,
    ):
        require(ttl_ms > 0, f"ttl_ms must be positive, got {ttl_ms}.", ConfigError)
        if sweep_interval_s is not None:
            require(sweep_interval_s > 0, "sweep_interval_s must be positive.", ConfigError)
        self.ttl_ms = int(ttl_ms)
        self.sweep_interval_s = (
            sweep_interval_s if sweep_interval_s is not None else self.ttl_ms / 2000.0
        )
        self._clock = clock or utils.now_ms
        self._entries: Dict[_Slot, CacheEntry[T]] = {}
        self._sweeper: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[_Slot]:
        return iter(list(self._entries))

    def now(self) -> int:
        return self._clock()

    def get(self, key: str, *, namespace: str = canon.DEFAULT_PROFILE) -> Optional[CacheEntry[T]]:
        """Fresh entry for key, or None. Expired entries read as a miss."""
        entry = self._entries.get((namespace, key))
        if entry is None:
            return None
        if not entry.is_fresh(self.now()):
            logger.debug("Cache expired for %s/%s", namespace, key)
            return None
        return entry

    def get_stale(
        self, key: str, *, namespace: str = canon.DEFAULT_PROFILE
    ) -> Optional[CacheEntry[T]]:
        """Entry for key regardless of age (until a sweep removes it)."""
        return self._entries.get((namespace, key))

    def set(
        self,
        key: str,
        payload: T,
        *,
        namespace: str = canon.DEFAULT_PROFILE,
        ttl_ms: Optional[int] = None,
        fetched_at_ms: Optional[int] = None,
    ) -> CacheEntry[T]:
        """Unconditionally store payload, stamped now (or at fetched_at_ms)."""
        ttl = self.ttl_ms if ttl_ms is None else int(ttl_ms)
        require(ttl > 0, f"ttl_ms must be positive, got {ttl}.", ConfigError)
        entry = CacheEntry(
            key=key,
            payload=payload,
            fetched_at_ms=self.now() if fetched_at_ms is None else int(fetched_at_ms),
            ttl_ms=ttl,
        )
        # single assignment: readers see the old entry or the new one
        self._entries[(namespace, key)] = entry
        return entry

    def set_if_newer(
        self,
        key: str,
        payload: T,
        *,
        fetched_at_ms: int,
        namespace: str = canon.DEFAULT_PROFILE,
        ttl_ms: Optional[int] = None,
    ) -> bool:
        """
        Store payload unless the current entry was issued later.

        Returns False (and leaves the cache alone) for a late result.
        """
        current = self._entries.get((namespace, key))
        if current is not None and current.fetched_at_ms > fetched_at_ms:
            logger.info(
                "Discarding late result for %s/%s (issued %d < cached %d)",
                namespace,
                key,
                fetched_at_ms,
                current.fetched_at_ms,
            )
            return False
        self.set(
            key, payload, namespace=namespace, ttl_ms=ttl_ms, fetched_at_ms=fetched_at_ms
        )
        return True

    def delete(self, key: str, *, namespace: str = canon.DEFAULT_PROFILE) -> bool:
        return self._entries.pop((namespace, key), None) is not None

    def sweep(self) -> int:
        """Remove every entry that is no longer fresh. Returns the count removed."""
        now = self.now()
        expired = [slot for slot, e in self._entries.items() if not e.is_fresh(now)]
        for slot in expired:
            del self._entries[slot]
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def clear(self, namespace: Optional[str] = None) -> int:
        """Drop one namespace, or everything when namespace is None."""
        if namespace is None:
            count = len(self._entries)
            self._entries.clear()
            return count
        slots = [slot for slot in self._entries if slot[0] == namespace]
        for slot in slots:
            del self._entries[slot]
        return len(slots)

    ## Periodic sweep
    async def run_sweeper(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_s)
            self.sweep()

    def start_sweeper(self) -> asyncio.Task:
        """Start the sweep loop on the running event loop (idempotent)."""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self.run_sweeper())
        return self._sweeper

    async def stop_sweeper(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def sweeping(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()
