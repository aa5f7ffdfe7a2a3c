"""Per-thread debounce for inbox activity.

A burst of inbox updates for one thread (someone typing several messages,
relays replaying the same entry) collapses into a single reconciliation:
    1. notify(key) cancels the key's pending timer, if any
    2. a new timer starts; when it fires the key is released and the
       callback runs against whatever state exists at that moment

Timers for different keys are independent. A callback that is already
running is never cancelled by a later notify.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from loguru import logger

DEFAULT_DEBOUNCE_DELAY = 2.0  # seconds

OnFire = Callable[[], Awaitable[None]]


class DebounceCoordinator:
    """Keyed timer registry: at most one pending timer per key."""

    def __init__(self, delay: float = DEFAULT_DEBOUNCE_DELAY) -> None:
        self.delay = delay
        self._timers: dict[str, asyncio.Task] = {}
        self._firing: set[asyncio.Task] = set()

    def __len__(self) -> int:
        return len(self._timers)

    def pending(self, key: str) -> bool:
        return key in self._timers

    # ── Notify ────────────────────────────────────────────────────────

    def notify(self, key: str, on_fire: OnFire) -> None:
        """Restart the delay for ``key``; only the last callback will run."""
        existing = self._timers.pop(key, None)
        if existing and not existing.done():
            existing.cancel()
            logger.debug(f"Debounce: superseded pending timer for {key}")
        self._timers[key] = asyncio.create_task(self._timer(key, on_fire))

    async def _timer(self, key: str, on_fire: OnFire) -> None:
        """Wait for the window, release the key, then run the callback."""
        await asyncio.sleep(self.delay)
        task = asyncio.current_task()
        if self._timers.get(key) is task:
            del self._timers[key]
        if task is not None:
            self._firing.add(task)
        try:
            await on_fire()
        except Exception as e:
            logger.error(f"Debounce: callback for {key} failed: {e}")
        finally:
            self._firing.discard(task)

    # ── Shutdown ──────────────────────────────────────────────────────

    async def cancel_all(self) -> None:
        """Cancel pending timers and any callbacks still running."""
        tasks = list(self._timers.values()) + list(self._firing)
        self._timers.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
