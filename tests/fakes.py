from __future__ import annotations

from collections.abc import Callable
from typing import Any

from shells.project_docs.events import EventHook
from shells.project_docs.models import ObservedResponse


class FakeHost:
    """In-memory BrowserHost: records calls, answers scripts from a queue or a handler."""

    def __init__(self, current_url: str = "") -> None:
        self.current_url = current_url
        self.source_changed: EventHook[str] = EventHook("source_changed")
        self.response_received: EventHook[ObservedResponse] = EventHook("response_received")
        self.navigation_completed: EventHook[str] = EventHook("navigation_completed")
        self.frame_navigation_completed: EventHook[str] = EventHook("frame_navigation_completed")
        self.history_changed: EventHook[None] = EventHook("history_changed")
        self.scripts: list[str] = []
        self.results: list[Any] = []
        self.handler: Callable[[str], str] | None = None
        self.navigations: list[str] = []
        self.reloads = 0

    async def navigate(self, url: str) -> None:
        self.navigations.append(url)

    async def reload(self) -> None:
        self.reloads += 1

    async def execute_script(self, code: str) -> str:
        self.scripts.append(code)
        if self.handler is not None:
            return self.handler(code)
        if self.results:
            result = self.results.pop(0)
            if isinstance(result, BaseException):
                raise result
            return result
        return "null"

    def goto(self, url: str) -> None:
        self.current_url = url
        self.source_changed.emit(url)
        self.navigation_completed.emit(url)


def response(method: str, url: str, body: str = "", status: int | None = 200) -> ObservedResponse:
    async def _read() -> str:
        return body

    return ObservedResponse(method=method, url=url, status=status, read_body=_read)
