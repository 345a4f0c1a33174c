"""
Error taxonomy for remote document operations.

- RemoteCallError: the in-page call threw or the server answered non-2xx
- ParseError: the server answered, but not with the expected JSON shape
- NoActiveProjectError: a mutation was requested before any project was observed

Classification misses are not errors (see url_classifier.EventKind.UNCLASSIFIED).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_STATUS_RE = re.compile(r"status:\s*(\d{3})")


@dataclass
class ShellError(Exception):
    """Structured error surfaced to the UI layer."""

    operation: str
    reason: str
    suggestion: str = ""
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        text = f"{self.operation} failed: {self.reason}"
        if self.suggestion:
            text += f". Suggestion: {self.suggestion}"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": True,
            "type": type(self).__name__,
            "operation": self.operation,
            "reason": self.reason,
            "suggestion": self.suggestion,
            "details": self.details,
        }


@dataclass
class RemoteCallError(ShellError):
    status: int | None = None

    @classmethod
    def from_script_failure(cls, operation: str, exc: BaseException, *, url: str = "") -> RemoteCallError:
        reason = str(exc) or type(exc).__name__
        match = _STATUS_RE.search(reason)
        status = int(match.group(1)) if match else None
        return cls(
            operation=operation,
            reason=reason,
            suggestion="Check that you are still signed in, then retry",
            details={"url": url} if url else {},
            status=status,
        )


@dataclass
class ParseError(RemoteCallError):
    pass


@dataclass
class NoActiveProjectError(ShellError):
    suggestion: str = "Open a project in the browser first"


__all__ = ["NoActiveProjectError", "ParseError", "RemoteCallError", "ShellError"]
