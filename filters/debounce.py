"""
Latest-wins scheduling helpers for the asyncio event loop.

Debouncer
    Delays an action until calls have paused for ``delay`` seconds.  Each
    ``schedule()`` bumps a generation counter and cancels the pending task;
    a task only runs its action when its generation is still the current
    one, so a burst of calls collapses into a single invocation of the
    last action.

LatestRequestTracker
    Tags asynchronous requests with per-key sequence numbers so a reply can
    check whether a newer request for the same key was issued meanwhile.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Hashable, Optional, Union

logger = logging.getLogger(__name__)

Action = Callable[[], Union[Awaitable[Any], Any]]


class Debouncer:
    """Single-slot debounced action runner."""

    def __init__(self, delay: float, name: str = "debounce") -> None:
        """Initialise the debouncer.

        Args:
            delay: Quiet period in seconds before the action runs.
            name:  Label used in log messages.
        """
        self.delay = delay
        self.name = name
        self._generation = 0
        self._task: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def schedule(self, action: Action) -> int:
        """Replace any pending action with ``action`` and restart the timer.

        Must be called from a running event loop.

        Returns:
            The generation number assigned to this action.
        """
        if self._closed:
            raise RuntimeError(f"{self.name}: debouncer is closed")
        self.cancel()
        self._generation += 1
        generation = self._generation
        self._task = asyncio.get_running_loop().create_task(
            self._fire(generation, action)
        )
        return generation

    def cancel(self) -> None:
        """Drop the pending action, if any."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def close(self) -> None:
        """Cancel the pending action and refuse further scheduling."""
        self.cancel()
        self._closed = True

    async def wait(self) -> None:
        """Wait until the pending action (if any) has run or been cancelled."""
        while self._task is not None and not self._task.done():
            task = self._task
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if not task.cancelled():
                    raise

    async def _fire(self, generation: int, action: Action) -> None:
        await asyncio.sleep(self.delay)
        if generation != self._generation or self._closed:
            return
        result = action()
        if inspect.isawaitable(result):
            await result


class LatestRequestTracker:
    """Per-key request sequence numbers for stale-response suppression."""

    def __init__(self) -> None:
        self._latest: dict[Hashable, int] = {}

    def issue(self, key: Hashable) -> int:
        token = self._latest.get(key, 0) + 1
        self._latest[key] = token
        return token

    def is_current(self, key: Hashable, token: int) -> bool:
        return self._latest.get(key) == token

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Make every outstanding token stale (for one key or all keys)."""
        keys = [key] if key is not None else list(self._latest)
        for k in keys:
            self._latest[k] = self._latest.get(k, 0) + 1
