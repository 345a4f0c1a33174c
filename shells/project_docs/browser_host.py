"""
Browser collaborator: the contract the correlator and the bridge depend on, and
its Chrome DevTools Protocol implementation.

Event mapping (top-level frame unless stated):
- Page.frameNavigated               -> source_changed(url)
- Page.frameNavigated (child frame) -> frame_navigation_completed(url)
- Page.loadEventFired               -> navigation_completed(current_url)
- Page.navigatedWithinDocument      -> source_changed(url) + history_changed()
- Network.loadingFinished           -> response_received(ObservedResponse)
  (method/url from requestWillBeSent, status from responseReceived, body read
  lazily through Network.getResponseBody)
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from typing import Any, Protocol

from .cdp import CdpConnection
from .config import ShellConfig
from .events import EventHook
from .http_client import HttpClientError, ScriptExecutionError
from .launcher import BrowserLauncher
from .models import ObservedResponse
from .redaction import redact_url_brief

logger = logging.getLogger("docs_shell.browser_host")


class BrowserHost(Protocol):
    current_url: str
    source_changed: EventHook[str]
    response_received: EventHook[ObservedResponse]
    navigation_completed: EventHook[str]
    frame_navigation_completed: EventHook[str]
    history_changed: EventHook[None]

    async def navigate(self, url: str) -> None: ...

    async def reload(self) -> None: ...

    async def execute_script(self, code: str) -> str:
        """Evaluate code in the page; returns the JSON-stringified result or raises."""
        ...


def _exception_text(details: dict[str, Any]) -> str:
    exc = details.get("exception")
    if isinstance(exc, dict):
        desc = exc.get("description") or exc.get("value")
        if desc:
            return str(desc).splitlines()[0]
    return str(details.get("text") or "Uncaught exception")


class CdpBrowserHost:
    """BrowserHost backed by one page target over CDP."""

    def __init__(self, config: ShellConfig, *, launcher: BrowserLauncher | None = None) -> None:
        self.config = config
        self.launcher = launcher or BrowserLauncher(config)
        self.conn: CdpConnection | None = None
        self.target_id: str | None = None
        self.current_url = ""
        self._main_frame_id: str | None = None
        # requestId -> {"method", "url", "status"}
        self._requests: dict[str, dict[str, Any]] = {}
        self._max_requests = 800

        self.source_changed: EventHook[str] = EventHook("source_changed")
        self.response_received: EventHook[ObservedResponse] = EventHook("response_received")
        self.navigation_completed: EventHook[str] = EventHook("navigation_completed")
        self.frame_navigation_completed: EventHook[str] = EventHook("frame_navigation_completed")
        self.history_changed: EventHook[None] = EventHook("history_changed")

    async def connect(self, conn: CdpConnection | None = None) -> None:
        if conn is None:
            target = await asyncio.to_thread(self._pick_page_target)
            self.target_id = str(target.get("id") or "")
            self.current_url = str(target.get("url") or "")
            conn = CdpConnection(str(target["webSocketDebuggerUrl"]), timeout=self.config.cdp_timeout)
        self.conn = conn
        conn.set_event_sink(self.handle_event)
        await conn.open()
        await conn.send_many(
            [
                {"method": "Page.enable", "params": {}},
                {"method": "Runtime.enable", "params": {}},
                {"method": "Network.enable", "params": {}},
            ]
        )
        tree = await conn.send("Page.getFrameTree")
        frame = (tree.get("frameTree") or {}).get("frame") or {}
        self._main_frame_id = frame.get("id")
        if isinstance(frame.get("url"), str) and frame["url"]:
            self.current_url = frame["url"]
        logger.info("browser_host_connected target=%s url=%s", self.target_id, redact_url_brief(self.current_url))

    def _pick_page_target(self) -> dict[str, Any]:
        targets = self.launcher.list_targets()
        for target in targets:
            if target.get("type") == "page" and target.get("webSocketDebuggerUrl"):
                return target
        raise HttpClientError(f"No page target on CDP port {self.config.cdp_port}")

    async def close(self) -> None:
        conn, self.conn = self.conn, None
        if conn is not None:
            await conn.close()

    def _require_conn(self) -> CdpConnection:
        if self.conn is None:
            raise HttpClientError("Browser host is not connected")
        return self.conn

    async def navigate(self, url: str) -> None:
        result = await self._require_conn().send("Page.navigate", {"url": url})
        if result.get("errorText"):
            raise HttpClientError(f"Navigation failed: {result['errorText']}")

    async def reload(self) -> None:
        await self._require_conn().send("Page.reload", {"ignoreCache": False})

    async def execute_script(self, code: str) -> str:
        result = await self._require_conn().send(
            "Runtime.evaluate",
            {
                "expression": code,
                "returnByValue": True,
                "awaitPromise": True,
            },
        )
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            raise ScriptExecutionError(_exception_text(details))
        value = result.get("result")
        if not isinstance(value, dict) or value.get("type") == "undefined":
            return "null"
        return json.dumps(value.get("value"))

    # ─────────────────────────────────────────────────────────────────────────
    # CDP events
    # ─────────────────────────────────────────────────────────────────────────

    def handle_event(self, event: dict[str, Any]) -> None:
        method = event.get("method")
        params = event.get("params")
        if not isinstance(params, dict):
            params = {}

        if method == "Network.requestWillBeSent":
            req = params.get("request")
            request_id = params.get("requestId")
            if isinstance(req, dict) and isinstance(request_id, str):
                self._remember(request_id, {"method": req.get("method") or "GET", "url": req.get("url") or ""})
            return

        if method == "Network.responseReceived":
            meta = self._requests.get(params.get("requestId") or "")
            resp = params.get("response")
            if meta is not None and isinstance(resp, dict):
                status = resp.get("status")
                meta["status"] = int(status) if isinstance(status, (int, float)) else None
            return

        if method == "Network.loadingFinished":
            request_id = params.get("requestId")
            meta = self._requests.pop(request_id or "", None)
            if meta is None or not meta.get("url"):
                return
            response = ObservedResponse(
                method=str(meta["method"]).upper(),
                url=str(meta["url"]),
                status=meta.get("status"),
                read_body=lambda rid=request_id: self._read_body(rid),
            )
            self.response_received.emit(response)
            return

        if method == "Network.loadingFailed":
            self._requests.pop(params.get("requestId") or "", None)
            return

        if method == "Page.frameNavigated":
            frame = params.get("frame")
            if not isinstance(frame, dict):
                return
            url = frame.get("url") if isinstance(frame.get("url"), str) else ""
            if frame.get("parentId"):
                self.frame_navigation_completed.emit(url)
                return
            self._main_frame_id = frame.get("id") or self._main_frame_id
            self._set_source(url)
            return

        if method == "Page.loadEventFired":
            self.navigation_completed.emit(self.current_url)
            return

        if method == "Page.navigatedWithinDocument":
            url = params.get("url")
            if params.get("frameId") not in (None, self._main_frame_id):
                return
            if isinstance(url, str) and url:
                self._set_source(url)
            self.history_changed.emit(None)
            return

    def _set_source(self, url: str) -> None:
        if not url or url == self.current_url:
            return
        self.current_url = url
        self.source_changed.emit(url)

    def _remember(self, request_id: str, meta: dict[str, Any]) -> None:
        self._requests[request_id] = meta
        if len(self._requests) > self._max_requests:
            drop = len(self._requests) - self._max_requests
            for key in list(self._requests.keys())[:drop]:
                self._requests.pop(key, None)

    async def _read_body(self, request_id: str) -> str:
        result = await self._require_conn().send("Network.getResponseBody", {"requestId": request_id})
        body = result.get("body")
        if not isinstance(body, str):
            return ""
        if result.get("base64Encoded"):
            return base64.b64decode(body).decode("utf-8", errors="replace")
        return body


__all__ = ["BrowserHost", "CdpBrowserHost"]
