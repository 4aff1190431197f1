"""Trailing-edge debounce keyed by source."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from specsync.observability import get_logger

log = get_logger("specsync.sync")


class Debouncer:
    """Coalesces bursts of events per key into one trailing call.

    Each :meth:`schedule` cancels the key's pending timer and starts a new
    one; the callback runs once *delay* seconds after the last event.

    Parameters
    ----------
    delay:
        Quiet period in seconds.
    """

    def __init__(self, delay: float) -> None:
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay}")
        self._delay = delay
        self._timers: dict[str, asyncio.Task[None]] = {}

    @property
    def delay(self) -> float:
        return self._delay

    def schedule(self, key: str, callback: Callable[[], Awaitable[Any]]) -> None:
        """(Re)start the timer for *key*.  Must be called from a running loop."""
        self.cancel(key)
        self._timers[key] = asyncio.create_task(self._fire(key, callback))

    def cancel(self, key: str) -> bool:
        """Drop the pending timer for *key*; return whether one was pending."""
        task = self._timers.pop(key, None)
        if task is None:
            return False
        task.cancel()
        return True

    def cancel_all(self) -> None:
        for key in list(self._timers):
            self.cancel(key)

    def pending(self, key: str) -> bool:
        return key in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    async def _fire(self, key: str, callback: Callable[[], Awaitable[Any]]) -> None:
        await asyncio.sleep(self._delay)
        # Events arriving while the callback runs start a fresh timer.
        if self._timers.get(key) is asyncio.current_task():
            del self._timers[key]
        try:
            await callback()
        except Exception:
            log.error(
                "debounced callback failed",
                exc_info=True,
                extra={"extra_fields": {"op": "debounce", "key": key}},
            )
