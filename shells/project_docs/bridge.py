"""
Remote document operations performed from inside the page.

Each call is one request/response exchange: a fetch() script runs in the page
(reusing its authenticated session), and its JSON result comes back through
BrowserHost.execute_script. The browser also observes that same request on the
wire, so the correlator sees every mutation a second time; both paths feed the
same debouncers and coalesce.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from .errors import NoActiveProjectError, ParseError, RemoteCallError
from .models import Artifact
from .page_scripts import AUTOCOMPLETE_HELPER, build_rest_call, build_update_file_names
from .redaction import redact_url_brief

if TYPE_CHECKING:
    from .browser_host import BrowserHost
    from .config import ShellConfig
    from .correlator import SessionCorrelator
    from .file_tree import ProjectFileSource
    from .models import SessionContext

logger = logging.getLogger("docs_shell.bridge")


class RemoteActionBridge:
    def __init__(self, host: BrowserHost, correlator: SessionCorrelator, config: ShellConfig) -> None:
        self.host = host
        self.correlator = correlator
        self.config = config

    @property
    def context(self) -> SessionContext:
        return self.correlator.context

    def _require_organization(self, operation: str) -> str:
        org = self.context.active_organization_id
        if not org:
            raise NoActiveProjectError(operation=operation, reason="no organization has been observed yet")
        return org

    def _require_project(self, operation: str) -> tuple[str, str]:
        org = self._require_organization(operation)
        project = self.context.active_project_id
        if not project:
            raise NoActiveProjectError(operation=operation, reason="no project has been observed yet")
        return org, project

    async def _call(self, operation: str, script: str, url: str) -> Any:
        try:
            raw = await self.host.execute_script(script)
        except Exception as exc:
            err = RemoteCallError.from_script_failure(operation, exc, url=redact_url_brief(url))
            logger.error("remote_call_failed op=%s status=%s reason=%s", operation, err.status, err.reason)
            raise err from exc
        try:
            return json.loads(raw) if raw else None
        except (TypeError, json.JSONDecodeError) as exc:
            err = ParseError(operation=operation, reason=f"result is not JSON: {exc}")
            logger.error("remote_call_failed op=%s reason=%s", operation, err.reason)
            raise err from exc

    async def create_artifact(self, file_name: str, content: str) -> Artifact:
        org, project = self._require_project("create_artifact")
        url = self.config.docs_collection_url(org, project)
        script = build_rest_call("trackArtifact", "POST", url, {"file_name": file_name, "content": content})

        payload = await self._call("create_artifact", script, url)
        # The remote side has accepted the mutation; refresh even if the echo is malformed.
        self.correlator.notify_mutation()
        try:
            artifact = Artifact.from_payload(
                payload,
                project_uuid=project,
                fallback_name=file_name,
                fallback_content=content,
                operation="create_artifact",
            )
        except ParseError as err:
            logger.error("remote_call_failed op=create_artifact reason=%s", err.reason)
            raise
        logger.info("artifact_created uuid=%s file=%s", artifact.uuid, artifact.file_name)
        return artifact

    async def delete_artifact(self, artifact: Artifact) -> None:
        org = self._require_organization("delete_artifact")
        # Scoped by the artifact's own project, which may no longer be the active one.
        project = artifact.project_uuid or self.context.active_project_id
        if not project:
            raise NoActiveProjectError(operation="delete_artifact", reason="artifact has no project")
        url = self.config.docs_item_url(org, project, artifact.uuid)
        script = build_rest_call("untrackArtifact", "DELETE", url)

        await self._call("delete_artifact", script, url)
        self.correlator.notify_mutation()
        logger.info("artifact_deleted uuid=%s", artifact.uuid)

    async def fetch_docs(self) -> None:
        """Ask the page to GET the docs collection; the result arrives as docs_received."""
        org, project = self._require_project("fetch_docs")
        url = self.config.docs_collection_url(org, project)
        await self._call("fetch_docs", build_rest_call("fetchDocs", "GET", url), url)

    async def install_autocomplete(self) -> bool:
        """Install the file-name autocomplete helper. Returns False if it was already there."""
        raw = await self.host.execute_script(AUTOCOMPLETE_HELPER)
        return raw == "true"

    async def update_file_name_suggestions(self, source: ProjectFileSource | None) -> int:
        """Push local file names into the page helper; returns how many were sent."""
        if source is None:
            return 0
        names = [f.name for f in source.get_all_project_files()]
        try:
            await self.host.execute_script(build_update_file_names(names))
        except Exception as exc:  # noqa: BLE001
            logger.warning("file_name_suggestions_failed error=%s", exc)
            return 0
        return len(names)


__all__ = ["RemoteActionBridge"]
