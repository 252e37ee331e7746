"""Sharded in-memory rate limit counters.

Counters are the only state shared between concurrent requests. Keys are
spread over a fixed number of shards, each guarded by its own lock, and the
background sweep takes the same per-shard locks when it evicts expired
entries.
"""

import asyncio
import logging
import threading
import time
from dataclasses import replace
from typing import Callable, Dict, List, Optional

from ..entities import RateLimitConfig, RateLimitEntry

logger = logging.getLogger(__name__)


class RateLimitStore:
    """Fixed-window counters with an explicit start/sweep/stop lifecycle."""

    def __init__(
        self,
        shards: int = 16,
        sweep_interval_seconds: float = 300.0,
        grace_seconds: float = 60.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._shards: List[Dict[str, RateLimitEntry]] = [{} for _ in range(max(1, shards))]
        self._locks: List[threading.Lock] = [threading.Lock() for _ in self._shards]
        self._sweep_interval = sweep_interval_seconds
        self._grace_ms = grace_seconds * 1000
        self._clock = clock or time.monotonic
        self._sweep_task: Optional[asyncio.Task] = None

    def now_ms(self) -> float:
        """Current time in milliseconds on the store's clock."""
        return self._clock() * 1000

    def _shard_for(self, key: str) -> int:
        return hash(key) % len(self._shards)

    def hit(self, key: str, config: RateLimitConfig, now_ms: Optional[float] = None) -> RateLimitEntry:
        """Count one request for ``key`` and return a snapshot of its entry.

        Starts a new window when none exists, the current one is over, or the
        key's configuration has changed.
        """
        now_ms = self.now_ms() if now_ms is None else now_ms
        index = self._shard_for(key)
        with self._locks[index]:
            shard = self._shards[index]
            entry = shard.get(key)
            if (
                entry is None
                or entry.is_window_over(now_ms)
                or entry.window_ms != config.window_ms
                or entry.max_requests != config.max_requests
            ):
                entry = RateLimitEntry(
                    key=key,
                    count=0,
                    window_start_ms=now_ms,
                    window_ms=config.window_ms,
                    max_requests=config.max_requests,
                )
                shard[key] = entry
            entry.count += 1
            return replace(entry)

    def get(self, key: str) -> Optional[RateLimitEntry]:
        index = self._shard_for(key)
        with self._locks[index]:
            entry = self._shards[index].get(key)
            return replace(entry) if entry is not None else None

    def reset(self, key: Optional[str] = None) -> None:
        """Forget one key, or every key when ``key`` is None."""
        if key is not None:
            index = self._shard_for(key)
            with self._locks[index]:
                self._shards[index].pop(key, None)
            return
        for index, lock in enumerate(self._locks):
            with lock:
                self._shards[index].clear()

    def purge_expired(self, now_ms: Optional[float] = None) -> int:
        """Evict entries whose window ended more than the grace period ago.

        Returns:
            Number of entries evicted
        """
        now_ms = self.now_ms() if now_ms is None else now_ms
        removed = 0
        for index, lock in enumerate(self._locks):
            with lock:
                shard = self._shards[index]
                expired = [key for key, entry in shard.items() if now_ms >= entry.window_end_ms + self._grace_ms]
                for key in expired:
                    del shard[key]
                removed += len(expired)
        if removed:
            logger.debug(f"Purged {removed} expired rate limit entries")
        return removed

    def __len__(self) -> int:
        total = 0
        for index, lock in enumerate(self._locks):
            with lock:
                total += len(self._shards[index])
        return total

    @property
    def is_running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def start(self) -> None:
        """Start the periodic sweep task."""
        if self.is_running:
            return

        async def sweep_loop():
            while True:
                try:
                    await asyncio.sleep(self._sweep_interval)
                    self.purge_expired()
                except asyncio.CancelledError:
                    break
                except Exception as e:
                    logger.warning(f"Rate limit sweep error: {e}")

        self._sweep_task = asyncio.create_task(sweep_loop())
        logger.debug(f"Rate limit sweep started (interval={self._sweep_interval}s)")

    async def stop(self) -> None:
        """Stop the sweep task and drop all counters."""
        task, self._sweep_task = self._sweep_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.reset()
        logger.debug("Rate limit store stopped")
