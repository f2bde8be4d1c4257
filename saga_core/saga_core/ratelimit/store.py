"""Rate-window storage.

The limiter never mutates a window in place.  It reads the current value
with :meth:`RateLimitStore.get`, computes the next value, and writes it
back with :meth:`RateLimitStore.compare_and_swap`, retrying if another
request for the same key got there first.  That makes the per-key
read-modify-write atomic without the limiter holding a lock.

:class:`InMemoryRateLimitStore` keeps windows in a process-local dict.

.. warning:: **Single-replica limitation**

   Each replica keeps its own counters and a restart resets them.  A
   shared store (for example a Redis hash updated with ``WATCH``/``MULTI``
   or a Lua script) only needs to implement ``get`` and
   ``compare_and_swap`` to slot in behind :class:`RateLimiter`.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

logger = logging.getLogger(__name__)

_CLEANUP_INTERVAL_SECONDS: float = 60.0


@dataclass(frozen=True)
class RateWindow:
    """Usage for one key within a fixed window.

    Attributes:
        key: Identity id or network address the window belongs to.
        count: Requests recorded in this window, including rejected ones.
        window_start: UNIX timestamp (seconds) the window opened.
        window_seconds: Window length.
        limit: Quota in force when the window was last written.
    """

    key: str
    count: int
    window_start: float
    window_seconds: float
    limit: int

    @property
    def reset_at(self) -> float:
        return self.window_start + self.window_seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.reset_at


@runtime_checkable
class RateLimitStore(Protocol):
    """Storage for :class:`RateWindow` values with an atomic swap."""

    async def get(self, key: str) -> RateWindow | None: ...

    async def compare_and_swap(self, key: str, expected: RateWindow | None, new: RateWindow) -> bool:
        """Store *new* only if the current value equals *expected*.

        ``expected=None`` means "only if the key is absent".  Returns
        ``True`` if the write happened.
        """
        ...


class InMemoryRateLimitStore:
    """Process-local :class:`RateLimitStore`.

    ``compare_and_swap`` runs under an :class:`asyncio.Lock`, so two
    coroutines racing on the same key cannot both succeed.

    Windows are never deleted by the limiter.  Call :meth:`start` to run a
    background task that drops expired windows every minute, or call
    :meth:`prune` directly.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._windows: dict[str, RateWindow] = {}
        self._lock: asyncio.Lock = asyncio.Lock()
        self._clock = clock
        self._cleanup_task: asyncio.Task[None] | None = None
        self._running: bool = False

    def __len__(self) -> int:
        return len(self._windows)

    # -- Lifecycle -----------------------------------------------------------

    def start(self) -> None:
        """Launch the periodic cleanup coroutine."""
        if self._running:
            return
        self._running = True
        self._cleanup_task = asyncio.ensure_future(self._cleanup_loop())

    async def stop(self) -> None:
        """Cancel the cleanup loop and wait for it to finish."""
        self._running = False
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None

    # -- Store API -----------------------------------------------------------

    async def get(self, key: str) -> RateWindow | None:
        return self._windows.get(key)

    async def compare_and_swap(self, key: str, expected: RateWindow | None, new: RateWindow) -> bool:
        async with self._lock:
            if self._windows.get(key) != expected:
                return False
            self._windows[key] = new
            return True

    async def prune(self, now: float | None = None) -> int:
        """Drop every expired window.  Returns the number removed."""
        now = self._clock() if now is None else now
        async with self._lock:
            stale = [key for key, window in self._windows.items() if window.is_expired(now)]
            for key in stale:
                del self._windows[key]
        return len(stale)

    # -- Housekeeping --------------------------------------------------------

    async def _cleanup_loop(self) -> None:
        while self._running:
            await asyncio.sleep(_CLEANUP_INTERVAL_SECONDS)
            removed = await self.prune()
            if removed:
                logger.debug("Rate-limit cleanup removed %d stale keys", removed)
