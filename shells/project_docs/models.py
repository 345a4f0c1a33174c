from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from .errors import ParseError


@dataclass
class SessionContext:
    """Correlated session state; written only by SessionCorrelator."""

    last_visited_url: str = ""
    active_organization_id: str | None = None
    active_project_id: str | None = None
    current_project_url: str | None = None

    @property
    def has_active_project(self) -> bool:
        return bool(self.active_organization_id and self.active_project_id)


@dataclass(eq=False)
class Artifact:
    """A remote project document. Identity is `uuid`."""

    uuid: str
    file_name: str
    content: str = ""
    project_uuid: str = ""
    created_at: str | None = None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Artifact):
            return NotImplemented
        return self.uuid == other.uuid

    def __hash__(self) -> int:
        return hash(self.uuid)

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        *,
        project_uuid: str,
        fallback_name: str = "",
        fallback_content: str = "",
        operation: str = "parse_artifact",
    ) -> Artifact:
        """Build an Artifact from a remote JSON object.

        The remote response does not echo the project id, so the caller stamps it.
        """
        if not isinstance(payload, dict):
            raise ParseError(
                operation=operation,
                reason=f"expected a JSON object, got {type(payload).__name__}",
            )
        uuid = payload.get("uuid")
        if not isinstance(uuid, str) or not uuid.strip():
            raise ParseError(operation=operation, reason="response has no 'uuid'", details={"keys": sorted(payload)})
        file_name = payload.get("file_name")
        if not isinstance(file_name, str) or not file_name:
            file_name = fallback_name
        content = payload.get("content")
        if not isinstance(content, str):
            content = fallback_content
        created_at = payload.get("created_at")
        return cls(
            uuid=uuid.strip(),
            file_name=file_name,
            content=content,
            project_uuid=project_uuid,
            created_at=created_at if isinstance(created_at, str) else None,
        )

    def to_payload(self) -> dict[str, str]:
        return {"file_name": self.file_name, "content": self.content}


@dataclass(frozen=True)
class DocsPayload:
    """Body of an observed docs response with the ids captured from its URL."""

    body: str
    organization_id: str | None = None
    project_id: str | None = None
    artifact_id: str | None = None
    created: bool = False


@dataclass
class ObservedResponse:
    """One network response seen by the browser.

    The body is a single-read stream on the browser side: text() reads it once and
    every later (or concurrent) caller gets the cached result.
    """

    method: str
    url: str
    status: int | None = None
    read_body: Callable[[], Awaitable[str]] | None = field(default=None, repr=False)
    _body: asyncio.Future[str] | None = field(default=None, init=False, repr=False)

    @property
    def ok(self) -> bool:
        return self.status is None or 200 <= self.status < 300

    async def text(self) -> str:
        if self._body is None:
            if self.read_body is None:
                return ""
            self._body = asyncio.ensure_future(self.read_body())
        return await asyncio.shield(self._body)


__all__ = ["Artifact", "DocsPayload", "ObservedResponse", "SessionContext"]
