"""URL redaction for log lines.

Observed URLs carry organization ids and sometimes tokens in the query; logs keep
only scheme, host and path.
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit


def redact_url_brief(url: str) -> str:
    """Low-noise URL redaction (drops query+fragment; removes userinfo)."""
    if not isinstance(url, str) or not url:
        return url
    try:
        parts = urlsplit(url)
        netloc = parts.netloc.split("@", 1)[1] if "@" in parts.netloc else parts.netloc
        return urlunsplit((parts.scheme, netloc, parts.path, "", ""))
    except ValueError:
        return "<unparseable-url>"
