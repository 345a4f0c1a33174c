"""Plain callback registration for domain and browser events.

Handlers may be sync or async. Async handlers are scheduled as tasks on the
running loop in registration order; the emitter never awaits them. A failing
handler is logged and never affects the emitter or the other handlers.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

logger = logging.getLogger("docs_shell.events")

T = TypeVar("T")


class EventHook(Generic[T]):
    def __init__(self, name: str) -> None:
        self.name = name
        self._handlers: list[Callable[[T], Any]] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def handler_count(self) -> int:
        return len(self._handlers)

    def subscribe(self, handler: Callable[[T], Any]) -> Callable[[], None]:
        """Register a handler; returns a callable that removes it again."""
        self._handlers.append(handler)

        def _unsubscribe() -> None:
            self.unsubscribe(handler)

        return _unsubscribe

    def unsubscribe(self, handler: Callable[[T], Any]) -> None:
        try:
            self._handlers.remove(handler)
        except ValueError:
            pass

    def emit(self, value: T) -> None:
        for handler in list(self._handlers):
            try:
                result = handler(value)
            except Exception:
                logger.exception("event_handler_failed event=%s", self.name)
                continue
            if inspect.isawaitable(result):
                self._track(result)

    def _track(self, awaitable: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("event_handler_failed event=%s error=%s", self.name, exc, exc_info=exc)


__all__ = ["EventHook"]
