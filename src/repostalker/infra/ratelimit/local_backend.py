"""Single-process counter store using ``asyncio`` primitives."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Sequence

from .base import CounterBackend, CounterWindow


class LocalCounterBackend(CounterBackend):
    """In-process counters with expiry, serialized by an ``asyncio.Lock``.

    Used automatically when Redis is unavailable at startup.  Counts are
    per-process, so a multi-worker deployment gets one budget per worker.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._counters: dict[str, tuple[int, float]] = {}
        self._lock = asyncio.Lock()

    def _current(self, key: str, now: float) -> int:
        entry = self._counters.get(key)
        if entry is None:
            return 0
        count, expires_at = entry
        if expires_at <= now:
            del self._counters[key]
            return 0
        return count

    def _sweep(self, now: float) -> None:
        expired = [k for k, (_, exp) in self._counters.items() if exp <= now]
        for k in expired:
            del self._counters[k]

    async def check_and_increment(
        self, windows: Sequence[CounterWindow]
    ) -> int | None:
        async with self._lock:
            now = self._clock()
            self._sweep(now)
            for index, window in enumerate(windows):
                if self._current(window.key, now) + 1 > window.ceiling:
                    return index
            for window in windows:
                count = self._current(window.key, now) + 1
                self._counters[window.key] = (count, now + window.ttl_ms / 1000)
            return None

    async def get_counts(self, keys: Sequence[str]) -> list[int]:
        async with self._lock:
            now = self._clock()
            return [self._current(key, now) for key in keys]

    async def aclose(self) -> None:
        self._counters.clear()
