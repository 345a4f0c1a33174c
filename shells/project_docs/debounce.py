"""Trailing-edge debouncer on the asyncio loop.

Every trigger() cancels the pending timer and restarts the countdown, so the
action runs once, delay_ms after the last trigger. There is no upper bound on
the coalescing window: a continuous stream of triggers can postpone the action
indefinitely.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger("docs_shell.debounce")


class Debouncer:
    def __init__(
        self,
        action: Callable[[], Any],
        delay_ms: int,
        *,
        name: str = "debounce",
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")
        self._action = action
        self.delay_ms = int(delay_ms)
        self.name = name
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._disposed = False
        self.scheduled_at: float | None = None
        self.fire_count = 0

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def disposed(self) -> bool:
        return self._disposed

    def trigger(self) -> None:
        """(Re)start the countdown. No-op after dispose()."""
        if self._disposed:
            return
        loop = self._loop or asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self.scheduled_at = loop.time()
        self._handle = loop.call_later(self.delay_ms / 1000.0, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def dispose(self) -> None:
        self.cancel()
        self._disposed = True

    def _fire(self) -> None:
        self._handle = None
        if self._disposed:
            return
        self.fire_count += 1
        try:
            result = self._action()
        except Exception:
            # Timer callbacks run outside any user action.
            logger.exception("debounced_action_failed name=%s", self.name)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("debounced_action_failed name=%s error=%s", self.name, exc)


__all__ = ["Debouncer"]
