"""Async commands with a busy guard.

Policy is drop-if-busy: while an execution is in flight, can_execute() is False
and further execute_async() calls return without running the action, though they
still publish the current state on state_changed. Errors from the action
propagate to the caller after the busy flag is cleared.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Generic, TypeVar

from .events import EventHook

logger = logging.getLogger("docs_shell.commands")

T = TypeVar("T")


class _GuardedBase:
    def __init__(self, name: str) -> None:
        self.name = name
        self._is_running = False
        self._tasks: set[asyncio.Task[Any]] = set()
        # Payload is the new is_running value.
        self.state_changed: EventHook[bool] = EventHook(f"{name}.state_changed")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def _run(self, call: Callable[[], Awaitable[Any]]) -> None:
        self._is_running = True
        self.state_changed.emit(True)
        try:
            await call()
        finally:
            self._is_running = False
            self.state_changed.emit(False)

    def _dropped(self) -> None:
        # Nothing ran; the payload repeats the current is_running value.
        self.state_changed.emit(self._is_running)

    def _schedule(self, coro: Awaitable[Any]) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("command_failed name=%s error=%s", self.name, exc)


class AsyncGuardedCommand(_GuardedBase):
    def __init__(
        self,
        execute: Callable[[], Awaitable[Any]],
        can_run: Callable[[], bool] | None = None,
        *,
        name: str = "command",
    ) -> None:
        if execute is None:
            raise ValueError("execute is required")
        super().__init__(name)
        self._execute = execute
        self._can_run = can_run

    def can_execute(self) -> bool:
        if self._is_running:
            return False
        return self._can_run() if self._can_run is not None else True

    async def execute_async(self) -> None:
        if not self.can_execute():
            self._dropped()
            return
        await self._run(self._execute)

    def execute(self) -> asyncio.Task[Any]:
        """Fire-and-forget entry point for UI bindings; failures are logged."""
        return self._schedule(self.execute_async())


class ParameterizedAsyncCommand(_GuardedBase, Generic[T]):
    def __init__(
        self,
        execute: Callable[[T], Awaitable[Any]],
        can_run: Callable[[T], bool] | None = None,
        *,
        name: str = "command",
    ) -> None:
        if execute is None:
            raise ValueError("execute is required")
        super().__init__(name)
        self._execute = execute
        self._can_run = can_run

    def can_execute(self, parameter: T) -> bool:
        if self._is_running:
            return False
        return self._can_run(parameter) if self._can_run is not None else True

    async def execute_async(self, parameter: T) -> None:
        if not self.can_execute(parameter):
            self._dropped()
            return
        await self._run(lambda: self._execute(parameter))

    def execute(self, parameter: T) -> asyncio.Task[Any]:
        return self._schedule(self.execute_async(parameter))


__all__ = ["AsyncGuardedCommand", "ParameterizedAsyncCommand"]
