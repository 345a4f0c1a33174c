from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BINARY_CANDIDATES: list[str] = [
    # Prefer Chromium; snap builds ignore --user-data-dir so they go last.
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/local/bin/chromium",
    "/opt/chromium/chromium",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "C:\\Program Files\\Chromium\\Application\\chrome.exe",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/opt/google/chrome/chrome",
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    "/snap/bin/chromium",
]


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name) or default)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name) or default)
    except ValueError:
        return default


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


@dataclass
class ShellConfig:
    binary_path: str
    profile_path: str
    cdp_port: int = 9222
    mode: str = "launch"
    extra_flags: list[str] = field(default_factory=list)
    headless: bool = False
    start_url: str = "https://claude.ai/projects"
    app_host: str = "claude.ai"
    api_base: str = "https://api.claude.ai"
    marker_token: str = "claude"
    reload_delay_ms: int = 1500
    refetch_delay_ms: int = 250
    cdp_timeout: float = 10.0
    project_root: str | None = None

    @staticmethod
    def normalize_mode(raw: str | None) -> str:
        mode = (raw or "").strip().lower()
        if mode in {"attach", "connect", "external"}:
            return "attach"
        return "launch"

    @classmethod
    def detect_binary(cls) -> str:
        env_path = os.environ.get("DOCS_SHELL_BROWSER_BINARY")
        if env_path:
            return expand_path(env_path)
        for candidate in DEFAULT_BINARY_CANDIDATES:
            path = Path(candidate)
            if path.exists() and os.access(str(path), os.X_OK):
                return str(path)
        # Last resort: rely on PATH lookup
        return "chromium"

    @classmethod
    def from_env(cls) -> ShellConfig:
        profile = expand_path(
            os.environ.get("DOCS_SHELL_PROFILE", "~/.local/share/project-docs-shell/browser-profile")
        )
        flags_raw = os.environ.get("DOCS_SHELL_BROWSER_FLAGS", "")
        extra_flags = [flag.strip() for flag in flags_raw.split(",") if flag.strip()]
        project_root = (os.environ.get("DOCS_SHELL_PROJECT_ROOT") or "").strip()
        return cls(
            binary_path=cls.detect_binary(),
            profile_path=profile,
            cdp_port=_env_int("DOCS_SHELL_CDP_PORT", 9222),
            mode=cls.normalize_mode(os.environ.get("DOCS_SHELL_MODE")),
            extra_flags=extra_flags,
            headless=_env_flag("DOCS_SHELL_HEADLESS", False),
            start_url=os.environ.get("DOCS_SHELL_START_URL") or "https://claude.ai/projects",
            app_host=(os.environ.get("DOCS_SHELL_APP_HOST") or "claude.ai").strip().lower(),
            api_base=(os.environ.get("DOCS_SHELL_API_BASE") or "https://api.claude.ai").rstrip("/"),
            marker_token=os.environ.get("DOCS_SHELL_MARKER") or "claude",
            reload_delay_ms=max(0, _env_int("DOCS_SHELL_RELOAD_DELAY_MS", 1500)),
            refetch_delay_ms=max(0, _env_int("DOCS_SHELL_REFETCH_DELAY_MS", 250)),
            cdp_timeout=max(1.0, _env_float("DOCS_SHELL_CDP_TIMEOUT", 10.0)),
            project_root=expand_path(project_root) if project_root else None,
        )

    def docs_collection_url(self, organization_id: str, project_id: str) -> str:
        return f"{self.api_base}/api/organizations/{organization_id}/projects/{project_id}/docs"

    def docs_item_url(self, organization_id: str, project_id: str, artifact_id: str) -> str:
        return f"{self.docs_collection_url(organization_id, project_id)}/{artifact_id}"
