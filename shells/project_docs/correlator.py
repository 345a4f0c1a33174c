"""
Session correlation engine.

Taps the browser's network traffic and navigation events, keeps the
SessionContext current, and turns classified responses into domain events:

- docs_received(raw_json)      a docs collection/item GET completed
- artifact_created(raw_json)   a docs POST completed
- artifact_deleted(artifact_id) a docs item DELETE completed
- project_changed(project_url) the top-level page moved to a different project
- docs_payload(DocsPayload)    either of the first two, tagged with the org/project
  of the response URL rather than whatever is active when the body arrives

Context policy:
- organization/project ids are last-observed-wins and only overwritten by a
  classified event that carries both; a miss never clears them
- any org/project-shaped URL refreshes them, even non-docs endpoints, so the
  context follows whatever project the page is talking to

Mutations (observed or issued by the bridge) trigger two independent debouncers:
a page reload after a quiet period, and a docs refetch.

Everything runs on one asyncio loop; the context has a single writer (this
class), so it is unlocked.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .config import ShellConfig
from .debounce import Debouncer
from .events import EventHook
from .models import DocsPayload, ObservedResponse, SessionContext
from .redaction import redact_url_brief
from .url_classifier import ClassifiedEvent, EventKind, UrlClassifier

if TYPE_CHECKING:
    from .bridge import RemoteActionBridge
    from .browser_host import BrowserHost

logger = logging.getLogger("docs_shell.correlator")


def _payload(event: ClassifiedEvent, body: str, *, created: bool = False) -> DocsPayload:
    return DocsPayload(
        body=body,
        organization_id=event.organization_id,
        project_id=event.project_id,
        artifact_id=event.artifact_id,
        created=created,
    )


class SessionCorrelator:
    def __init__(
        self,
        host: BrowserHost,
        config: ShellConfig,
        *,
        classifier: UrlClassifier | None = None,
        context: SessionContext | None = None,
    ) -> None:
        self.host = host
        self.config = config
        self.classifier = classifier or UrlClassifier(config.app_host, config.marker_token)
        self.context = context or SessionContext(last_visited_url=config.start_url)
        self._bridge: RemoteActionBridge | None = None
        self._unsubscribers: list[Callable[[], None]] = []
        self._disposed = False

        self.docs_received: EventHook[str] = EventHook("docs_received")
        self.artifact_created: EventHook[str] = EventHook("artifact_created")
        self.artifact_deleted: EventHook[str] = EventHook("artifact_deleted")
        self.project_changed: EventHook[str] = EventHook("project_changed")
        self.docs_payload: EventHook[DocsPayload] = EventHook("docs_payload")

        self.reload_debouncer = Debouncer(self._reload_if_on_project, config.reload_delay_ms, name="reload")
        self.refetch_debouncer = Debouncer(self._refetch_docs, config.refetch_delay_ms, name="refetch_docs")

    def bind_bridge(self, bridge: RemoteActionBridge) -> None:
        """Wire the docs refetch and autocomplete injection to the bridge."""
        self._bridge = bridge

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    def attach(self) -> None:
        if self._unsubscribers or self._disposed:
            return
        self._unsubscribers = [
            self.host.source_changed.subscribe(self.on_source_changed),
            self.host.response_received.subscribe(self.on_response_received),
            self.host.navigation_completed.subscribe(self.on_navigation_completed),
            self.host.frame_navigation_completed.subscribe(self.on_frame_navigation_completed),
            self.host.history_changed.subscribe(self.on_history_changed),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def dispose(self) -> None:
        """Stop observing and cancel both debouncers so no timer fires after teardown."""
        self.detach()
        self.reload_debouncer.dispose()
        self.refetch_debouncer.dispose()
        self._disposed = True

    # ─────────────────────────────────────────────────────────────────────────
    # Network responses
    # ─────────────────────────────────────────────────────────────────────────

    async def on_response_received(self, response: ObservedResponse) -> ClassifiedEvent:
        event = self.classifier.classify(response.url, response.method)
        if event.kind is EventKind.UNCLASSIFIED:
            return event

        if event.has_context:
            self._refresh_context(event)

        if not response.ok:
            logger.info(
                "response_not_ok kind=%s status=%s url=%s",
                event.kind.value,
                response.status,
                redact_url_brief(response.url),
            )
            return event

        if event.kind is EventKind.DOCS_FETCHED:
            body = await self._read_body(response, event)
            if body is not None:
                self.docs_received.emit(body)
                self.docs_payload.emit(_payload(event, body))
        elif event.kind is EventKind.DOCUMENT_CREATED:
            body = await self._read_body(response, event)
            if body is not None:
                self.artifact_created.emit(body)
                self.docs_payload.emit(_payload(event, body, created=True))
            self.notify_mutation()
        elif event.kind is EventKind.DOCUMENT_DELETED:
            if event.artifact_id:
                self.artifact_deleted.emit(event.artifact_id)
            self.notify_mutation()
        return event

    def _refresh_context(self, event: ClassifiedEvent) -> None:
        ctx = self.context
        if ctx.active_organization_id == event.organization_id and ctx.active_project_id == event.project_id:
            return
        ctx.active_organization_id = event.organization_id
        ctx.active_project_id = event.project_id
        logger.debug("context_refreshed org=%s project=%s", event.organization_id, event.project_id)

    async def _read_body(self, response: ObservedResponse, event: ClassifiedEvent) -> str | None:
        try:
            return await response.text()
        except Exception as exc:  # noqa: BLE001
            # Passive observation: a lost body is logged, never raised.
            logger.warning(
                "response_body_unavailable kind=%s url=%s error=%s",
                event.kind.value,
                redact_url_brief(response.url),
                exc,
            )
            return None

    def notify_mutation(self) -> None:
        """A remote document changed: reload the page and refetch docs once things settle."""
        self.reload_debouncer.trigger()
        self.refetch_debouncer.trigger()

    # ─────────────────────────────────────────────────────────────────────────
    # Navigation
    # ─────────────────────────────────────────────────────────────────────────

    def on_source_changed(self, url: str) -> None:
        if url:
            self.context.last_visited_url = url

    async def on_navigation_completed(self, url: str) -> None:
        await self.check_for_project_change(url or None)

    async def on_frame_navigation_completed(self, _frame_url: str) -> None:
        # Frames do not own the project; re-check against the top-level URL.
        await self.check_for_project_change()

    async def on_history_changed(self, _payload: None = None) -> None:
        await self.check_for_project_change()

    async def check_for_project_change(self, url: str | None = None) -> bool:
        """Re-inject page helpers and raise project_changed on a new project URL.

        Returns True when project_changed fired.
        """
        url = url or self.host.current_url or self.context.last_visited_url
        if not self.classifier.is_app_url(url):
            return False

        await self._install_page_helpers()

        project_url = self.classifier.canonical_project_url(url)
        if project_url is None or project_url == self.context.current_project_url:
            return False
        self.context.current_project_url = project_url
        logger.info("project_changed url=%s", project_url)
        self.project_changed.emit(project_url)
        return True

    async def _install_page_helpers(self) -> None:
        bridge = self._bridge
        if bridge is None:
            return
        try:
            await bridge.install_autocomplete()
        except Exception as exc:  # noqa: BLE001
            logger.warning("autocomplete_injection_failed error=%s", exc)

    # ─────────────────────────────────────────────────────────────────────────
    # Debounced follow-ups
    # ─────────────────────────────────────────────────────────────────────────

    async def _reload_if_on_project(self) -> None:
        # The user may have navigated away during the quiet period.
        url = self.context.last_visited_url
        if self.classifier.canonical_project_url(url) is None:
            logger.debug("reload_skipped url=%s", redact_url_brief(url))
            return
        try:
            await self.host.reload()
        except Exception as exc:  # noqa: BLE001
            logger.warning("reload_failed error=%s", exc)

    async def _refetch_docs(self) -> None:
        bridge = self._bridge
        if bridge is None or not self.context.has_active_project:
            return
        try:
            await bridge.fetch_docs()
        except Exception as exc:  # noqa: BLE001
            logger.warning("docs_refetch_failed error=%s", exc)


__all__ = ["SessionCorrelator"]
