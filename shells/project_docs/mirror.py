"""
In-memory mirror of the remote project docs.

Fed by the correlator's events:
- docs_payload: a docs GET returning a JSON list replaces the docs of the
  response's project; a single object (item GET or POST echo) is upserted
- artifact_deleted: drop by uuid
- project_changed: forget everything, the next docs fetch repopulates

Artifacts are stamped with the project taken from the response URL. The active
context only fills in when the URL carried none.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from .errors import ParseError
from .events import EventHook
from .models import Artifact, DocsPayload

if TYPE_CHECKING:
    from .correlator import SessionCorrelator

logger = logging.getLogger("docs_shell.mirror")


class ArtifactMirror:
    def __init__(self, correlator: SessionCorrelator) -> None:
        self.correlator = correlator
        self._artifacts: dict[str, Artifact] = {}
        self._unsubscribers: list[Callable[[], None]] = []
        # Payload is the number of artifacts after the change.
        self.changed: EventHook[int] = EventHook("mirror.changed")

    def attach(self) -> None:
        if self._unsubscribers:
            return
        c = self.correlator
        self._unsubscribers = [
            c.docs_payload.subscribe(self.on_docs_payload),
            c.artifact_deleted.subscribe(self.on_artifact_deleted),
            c.project_changed.subscribe(self.on_project_changed),
        ]

    def detach(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    # ─────────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────────

    def __len__(self) -> int:
        return len(self._artifacts)

    def __contains__(self, uuid: object) -> bool:
        return uuid in self._artifacts

    def all(self) -> list[Artifact]:
        return sorted(self._artifacts.values(), key=lambda a: a.file_name.lower())

    def get(self, uuid: str) -> Artifact | None:
        return self._artifacts.get(uuid)

    def find_by_file_name(self, file_name: str) -> Artifact | None:
        for artifact in self._artifacts.values():
            if artifact.file_name == file_name:
                return artifact
        return None

    # ─────────────────────────────────────────────────────────────────────────
    # Event handlers
    # ─────────────────────────────────────────────────────────────────────────

    def on_docs_payload(self, payload: DocsPayload) -> None:
        op = "artifact_created" if payload.created else "docs_received"
        data = self._load(op, payload.body)
        if data is None:
            return
        project = payload.project_id or self._active_project()
        if isinstance(data, list) and not payload.created:
            fresh: dict[str, Artifact] = {}
            for item in data:
                artifact = self._parse(item, op, project)
                if artifact is not None:
                    fresh[artifact.uuid] = artifact
            # A collection response is authoritative for its project.
            self._artifacts = {
                uuid: a for uuid, a in self._artifacts.items() if a.project_uuid and a.project_uuid != project
            }
            self._artifacts.update(fresh)
            logger.info("docs_mirrored project=%s count=%d", project, len(fresh))
        else:
            artifact = self._parse(data, op, project)
            if artifact is None:
                return
            self._artifacts[artifact.uuid] = artifact
        self.changed.emit(len(self._artifacts))

    def on_artifact_deleted(self, artifact_id: str) -> None:
        if self._artifacts.pop(artifact_id, None) is not None:
            self.changed.emit(len(self._artifacts))

    def on_project_changed(self, _project_url: str) -> None:
        if self._artifacts:
            self._artifacts.clear()
            self.changed.emit(0)

    # ─────────────────────────────────────────────────────────────────────────
    # Parsing
    # ─────────────────────────────────────────────────────────────────────────

    def _active_project(self) -> str:
        return self.correlator.context.active_project_id or ""

    def _load(self, operation: str, raw: str) -> Any | None:
        try:
            return json.loads(raw)
        except (TypeError, json.JSONDecodeError) as exc:
            logger.warning("mirror_payload_ignored op=%s reason=%s", operation, exc)
            return None

    def _parse(self, item: Any, operation: str, project: str) -> Artifact | None:
        try:
            return Artifact.from_payload(item, project_uuid=project, operation=operation)
        except ParseError as err:
            logger.warning("mirror_payload_ignored op=%s reason=%s", operation, err.reason)
            return None


__all__ = ["ArtifactMirror"]
