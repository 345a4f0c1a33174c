"""Async Chrome DevTools Protocol connection.

One reader task owns the socket: command responses resolve pending futures by id,
events go to the sink in the order they arrive on the wire.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from contextlib import suppress
from typing import Any

import websockets

from .http_client import HttpClientError

logger = logging.getLogger("docs_shell.cdp")


class CdpConnection:
    """Low-level CDP WebSocket connection."""

    def __init__(self, ws_url: str, timeout: float = 10.0) -> None:
        self.ws_url = ws_url
        self.timeout = float(timeout)
        self._ws: Any | None = None
        self._reader: asyncio.Task[None] | None = None
        self._next_id = 1
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._event_sink: Callable[[dict[str, Any]], None] | None = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._ws is not None and not self._closed

    def set_event_sink(self, sink: Callable[[dict[str, Any]], None] | None) -> None:
        """Attach a sink called for every received CDP event."""
        self._event_sink = sink

    async def open(self) -> None:
        if self._ws is not None:
            return
        try:
            self._ws = await websockets.connect(
                self.ws_url, max_size=None, ping_interval=None, open_timeout=self.timeout
            )
        except (OSError, asyncio.TimeoutError, websockets.WebSocketException) as exc:
            raise HttpClientError(f"CDP connect failed ({self.ws_url}): {exc}") from exc
        self._closed = False
        self._reader = asyncio.create_task(self._read_loop(), name="cdp-reader")

    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for its response."""
        if self._ws is None or self._closed:
            raise HttpClientError("CDP connection is not open")
        msg_id = self._next_id
        self._next_id += 1

        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params

        fut: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[msg_id] = fut
        try:
            await self._ws.send(json.dumps(msg))
            return await asyncio.wait_for(fut, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise HttpClientError(f"CDP response timed out ({method})") from exc
        except websockets.WebSocketException as exc:
            raise HttpClientError(str(exc)) from exc
        finally:
            self._pending.pop(msg_id, None)

    async def send_many(self, commands: list[dict[str, Any]], *, stop_on_error: bool = True) -> list[dict[str, Any]]:
        out: list[dict[str, Any]] = []
        for cmd in commands:
            method = cmd.get("method")
            if not isinstance(method, str) or not method:
                raise HttpClientError("send_many: each command must include a non-empty 'method'")
            try:
                out.append(await self.send(method, cmd.get("params")))
            except HttpClientError as exc:
                if stop_on_error:
                    raise
                out.append({"ok": False, "error": str(exc), "method": method})
        return out

    async def _read_loop(self) -> None:
        assert self._ws is not None
        try:
            async for raw in self._ws:
                try:
                    data = json.loads(raw)
                except json.JSONDecodeError:
                    continue
                if not isinstance(data, dict):
                    continue
                if "id" in data:
                    self._resolve(data)
                elif isinstance(data.get("method"), str):
                    self._dispatch_event(data)
        except websockets.ConnectionClosed:
            logger.info("cdp_connection_closed url=%s", self.ws_url)
        finally:
            self._closed = True
            self._fail_pending(HttpClientError("CDP connection closed"))

    def _resolve(self, data: dict[str, Any]) -> None:
        fut = self._pending.get(data.get("id"))  # type: ignore[arg-type]
        if fut is None or fut.done():
            return
        if "error" in data:
            fut.set_exception(HttpClientError(str(data["error"])))
        else:
            result = data.get("result")
            fut.set_result(result if isinstance(result, dict) else {})

    def _dispatch_event(self, event: dict[str, Any]) -> None:
        sink = self._event_sink
        if sink is None:
            return
        try:
            sink(event)
        except Exception:
            # A broken listener must not kill the reader.
            logger.exception("cdp_event_sink_failed method=%s", event.get("method"))

    def _fail_pending(self, exc: Exception) -> None:
        for fut in list(self._pending.values()):
            if not fut.done():
                fut.set_exception(exc)
        self._pending.clear()

    async def close(self) -> None:
        self._closed = True
        ws, self._ws = self._ws, None
        if ws is not None:
            with suppress(Exception):
                await ws.close()
        reader, self._reader = self._reader, None
        if reader is not None and not reader.done():
            reader.cancel()
            with suppress(asyncio.CancelledError):
                await reader
        self._fail_pending(HttpClientError("CDP connection closed"))


__all__ = ["CdpConnection"]
