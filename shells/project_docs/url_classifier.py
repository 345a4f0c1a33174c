"""
Classify observed (url, method) pairs into domain events.

Rules are evaluated in a fixed order and the first match wins:
1. project page          https://<app host>/project/{project_id}
2. docs collection GET   .../organizations/{org}/projects/{project}/docs[/{artifact}]
3. docs collection POST  .../organizations/{org}/projects/{project}/docs
4. docs item DELETE      .../organizations/{org}/projects/{project}/docs/{artifact}
5. generic correlation   .../organizations/{org}/projects/{project}/...

Classification is a pure function of (url, method): no state, never raises.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit


class EventKind(str, Enum):
    PROJECT_NAVIGATED = "project_navigated"
    DOCS_FETCHED = "docs_fetched"
    DOCUMENT_CREATED = "document_created"
    DOCUMENT_DELETED = "document_deleted"
    CONTEXT_OBSERVED = "context_observed"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class ClassifiedEvent:
    kind: EventKind
    url: str
    method: str = ""
    organization_id: str | None = None
    project_id: str | None = None
    artifact_id: str | None = None
    project_url: str | None = None

    @property
    def has_context(self) -> bool:
        return bool(self.organization_id and self.project_id)

    @property
    def is_mutation(self) -> bool:
        return self.kind in (EventKind.DOCUMENT_CREATED, EventKind.DOCUMENT_DELETED)


@dataclass(frozen=True)
class PatternRule:
    name: str
    kind: EventKind
    regex: re.Pattern[str]
    required_method: str | None = None
    # "path" rules see only the URL path; "url" rules see scheme://host/path.
    target: str = "path"

    @property
    def fields(self) -> tuple[str, ...]:
        ordered = sorted(self.regex.groupindex.items(), key=lambda kv: kv[1])
        return tuple(name for name, _ in ordered)

    def match(self, subject: str, method: str) -> re.Match[str] | None:
        if self.required_method is not None and method != self.required_method:
            return None
        return self.regex.search(subject)


_SEGMENT = r"[^/?#]+"
_ORG_PROJECT = rf"/organizations/(?P<organization_id>{_SEGMENT})/projects/(?P<project_id>{_SEGMENT})"
_TAIL = r"(?:/[^?#]*)?$"


def build_rules(app_host: str) -> tuple[PatternRule, ...]:
    host = re.escape(app_host)
    project_page = re.compile(rf"^(?P<scheme>https?)://{host}/project/(?P<project_id>{_SEGMENT}){_TAIL}")
    docs_any = re.compile(rf"{_ORG_PROJECT}/docs(?:/(?P<artifact_id>{_SEGMENT}))?{_TAIL}")
    docs_collection = re.compile(rf"{_ORG_PROJECT}/docs/?$")
    docs_item = re.compile(rf"{_ORG_PROJECT}/docs/(?P<artifact_id>{_SEGMENT}){_TAIL}")
    generic = re.compile(rf"{_ORG_PROJECT}/")
    return (
        PatternRule("project_page", EventKind.PROJECT_NAVIGATED, project_page, target="url"),
        PatternRule("docs_get", EventKind.DOCS_FETCHED, docs_any, required_method="GET"),
        PatternRule("docs_post", EventKind.DOCUMENT_CREATED, docs_collection, required_method="POST"),
        PatternRule("docs_delete", EventKind.DOCUMENT_DELETED, docs_item, required_method="DELETE"),
        PatternRule("org_project", EventKind.CONTEXT_OBSERVED, generic),
    )


class UrlClassifier:
    def __init__(self, app_host: str = "claude.ai", marker_token: str = "claude") -> None:
        self.app_host = app_host.strip().lower()
        self.marker_token = marker_token
        self.rules = build_rules(self.app_host)

    def classify(self, url: str, method: str = "GET") -> ClassifiedEvent:
        method = (method or "").strip().upper()
        unclassified = ClassifiedEvent(EventKind.UNCLASSIFIED, url=url if isinstance(url, str) else "", method=method)
        if not isinstance(url, str) or not url:
            return unclassified
        # Cheap pre-filter: only traffic for the remote product is worth a regex.
        if self.marker_token and self.marker_token not in url:
            return unclassified
        try:
            parts = urlsplit(url)
            host = (parts.hostname or "").lower()
        except ValueError:
            return unclassified
        if not parts.scheme or not host:
            return unclassified

        subjects = {"path": parts.path, "url": f"{parts.scheme}://{host}{parts.path}"}
        for rule in self.rules:
            match = rule.match(subjects[rule.target], method)
            if match is None:
                continue
            groups = match.groupdict()
            project_url = None
            if rule.kind is EventKind.PROJECT_NAVIGATED:
                project_url = f"{groups['scheme']}://{host}/project/{groups['project_id']}"
            return ClassifiedEvent(
                kind=rule.kind,
                url=url,
                method=method,
                organization_id=groups.get("organization_id"),
                project_id=groups.get("project_id"),
                artifact_id=groups.get("artifact_id"),
                project_url=project_url,
            )
        return unclassified

    def canonical_project_url(self, url: str) -> str | None:
        """Return scheme://host/project/{id} when url is a project page, else None."""
        event = self.classify(url, "GET")
        if event.kind is EventKind.PROJECT_NAVIGATED:
            return event.project_url
        return None

    def is_app_url(self, url: str) -> bool:
        if not isinstance(url, str) or (self.marker_token and self.marker_token not in url):
            return False
        try:
            return (urlsplit(url).hostname or "").lower() == self.app_host
        except ValueError:
            return False


_default = UrlClassifier()


def classify(url: str, method: str = "GET") -> ClassifiedEvent:
    return _default.classify(url, method)


__all__ = ["ClassifiedEvent", "EventKind", "PatternRule", "UrlClassifier", "build_rules", "classify"]
