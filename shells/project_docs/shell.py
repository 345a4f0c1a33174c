"""
Composition root: wires the browser host, correlator, bridge, mirror and the
user-facing commands together, and owns their lifecycle.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .bridge import RemoteActionBridge
from .browser_host import BrowserHost, CdpBrowserHost
from .commands import AsyncGuardedCommand, ParameterizedAsyncCommand
from .config import ShellConfig
from .correlator import SessionCorrelator
from .errors import ShellError
from .events import EventHook
from .file_tree import ProjectFileSource, ProjectFolder
from .launcher import BrowserLauncher
from .mirror import ArtifactMirror
from .models import Artifact, SessionContext

logger = logging.getLogger("docs_shell.shell")


class DocsShell:
    def __init__(
        self,
        config: ShellConfig | None = None,
        *,
        host: BrowserHost | None = None,
        launcher: BrowserLauncher | None = None,
        files: ProjectFileSource | None = None,
    ) -> None:
        self.config = config or ShellConfig.from_env()
        self.launcher = launcher or BrowserLauncher(self.config)
        self.host: BrowserHost = host or CdpBrowserHost(self.config, launcher=self.launcher)
        if files is None and self.config.project_root:
            files = ProjectFolder(self.config.project_root)
        self.files = files

        self.correlator = SessionCorrelator(self.host, self.config)
        self.bridge = RemoteActionBridge(self.host, self.correlator, self.config)
        self.correlator.bind_bridge(self.bridge)
        self.mirror = ArtifactMirror(self.correlator)

        # Payload is ShellError.to_dict() of a failed command.
        self.error_raised: EventHook[dict[str, Any]] = EventHook("error_raised")

        self.track_file: ParameterizedAsyncCommand[str] = ParameterizedAsyncCommand(
            self._track_file, self._can_track, name="track_file"
        )
        self.untrack: ParameterizedAsyncCommand[Artifact] = ParameterizedAsyncCommand(
            self._untrack, lambda artifact: artifact is not None, name="untrack"
        )
        self.refresh_suggestions = AsyncGuardedCommand(
            self._refresh_suggestions, lambda: self.files is not None, name="refresh_suggestions"
        )
        self._started = False
        self._closed = False

    @property
    def context(self) -> SessionContext:
        return self.correlator.context

    async def start(self) -> None:
        """Launch or attach, connect and begin observing. A closed shell cannot be restarted."""
        if self._closed:
            raise ShellError(
                operation="start",
                reason="shell has been closed",
                suggestion="Create a new DocsShell",
            )
        if self._started:
            return
        if isinstance(self.host, CdpBrowserHost):
            result = await asyncio.to_thread(self.launcher.ensure_running, self.config.cdp_timeout)
            logger.info("browser_ready started=%s message=%s", result.started, result.message)
            await self.host.connect()
        if self.host.current_url:
            self.context.last_visited_url = self.host.current_url
        self.mirror.attach()
        self.correlator.attach()
        self.correlator.project_changed.subscribe(self._on_project_changed)
        self._started = True
        await self.host.navigate(self.config.start_url)

    async def close(self) -> None:
        self.correlator.dispose()
        self.mirror.detach()
        if isinstance(self.host, CdpBrowserHost):
            await self.host.close()
        self._started = False
        self._closed = True

    async def run_forever(self) -> None:
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.close()

    # ─────────────────────────────────────────────────────────────────────────
    # Commands
    # ─────────────────────────────────────────────────────────────────────────

    def _can_track(self, file_name: str) -> bool:
        return bool(file_name) and isinstance(self.files, ProjectFolder) and self.context.has_active_project

    async def _track_file(self, file_name: str) -> Artifact:
        files = self.files
        if not isinstance(files, ProjectFolder):
            raise self._report(ShellError(operation="track_file", reason="no project folder is configured"))
        found = files.find(file_name)
        if found is None:
            raise self._report(ShellError(operation="track_file", reason=f"{file_name} is not in the project folder"))
        try:
            content = await asyncio.to_thread(files.read_text, found)
        except (OSError, ValueError) as exc:
            raise self._report(ShellError(operation="track_file", reason=str(exc))) from exc
        try:
            return await self.bridge.create_artifact(found.name, content)
        except ShellError as err:
            self._report(err)
            raise

    async def _untrack(self, artifact: Artifact) -> None:
        try:
            await self.bridge.delete_artifact(artifact)
        except ShellError as err:
            self._report(err)
            raise

    async def _refresh_suggestions(self) -> int:
        return await self.bridge.update_file_name_suggestions(self.files)

    def _report(self, err: ShellError) -> ShellError:
        self.error_raised.emit(err.to_dict())
        return err

    def _on_project_changed(self, _project_url: str) -> None:
        if self.refresh_suggestions.can_execute():
            self.refresh_suggestions.execute()


__all__ = ["DocsShell"]
