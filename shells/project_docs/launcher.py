from __future__ import annotations

import contextlib
import logging
import socket
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .config import ShellConfig, expand_path
from .http_client import HttpClientError, http_get_json

logger = logging.getLogger("docs_shell.launcher")


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str


class BrowserLauncher:
    def __init__(self, config: ShellConfig | None = None) -> None:
        self.config = config or ShellConfig.from_env()
        self.process: subprocess.Popen | None = None

    def _endpoint(self, path: str) -> str:
        return f"http://127.0.0.1:{self.config.cdp_port}{path}"

    def cdp_ready(self, timeout: float = 0.4) -> bool:
        """Return True if the CDP HTTP endpoint responds."""
        try:
            http_get_json(self._endpoint("/json/version"), timeout=timeout)
        except HttpClientError:
            return False
        return True

    def _port_available(self, timeout: float = 0.2) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(timeout)
            try:
                return sock.connect_ex(("127.0.0.1", self.config.cdp_port)) != 0
            except OSError:
                return False

    def _build_common_flags(self) -> list[str]:
        flags = [
            f"--remote-debugging-port={self.config.cdp_port}",
            f"--user-data-dir={expand_path(self.config.profile_path)}",
            "--remote-allow-origins=*",
            "--no-first-run",
            "--no-default-browser-check",
        ]
        if self.config.headless:
            flags.append("--headless=new")
        else:
            flags.append("--window-size=1280,900")
        return flags

    def build_launch_command(self, extra: list[str] | None = None) -> list[str]:
        flags = self._build_common_flags() + self.config.extra_flags
        if extra:
            flags.extend(extra)
        return [self.config.binary_path, *flags, self.config.start_url]

    def ensure_running(self, timeout: float = 10.0) -> LaunchResult:
        if self.config.mode == "attach":
            if self.cdp_ready():
                return LaunchResult([], False, "Attached to existing browser on CDP port")
            return LaunchResult(
                [],
                False,
                f"Attach mode: no browser listening on CDP port {self.config.cdp_port} "
                "(start it with --remote-debugging-port)",
            )

        if self.cdp_ready():
            return LaunchResult([], False, "Browser already listening on CDP port")
        if not self._port_available():
            return LaunchResult([], False, f"Port {self.config.cdp_port} already in use")

        with contextlib.suppress(OSError):
            Path(expand_path(self.config.profile_path)).mkdir(parents=True, exist_ok=True)

        cmd = self.build_launch_command()
        try:
            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as exc:
            return LaunchResult(cmd, False, str(exc))

        deadline = time.time() + timeout
        while time.time() < deadline:
            if self.cdp_ready():
                logger.info("browser_launched port=%s", self.config.cdp_port)
                return LaunchResult(cmd, True, "Browser launched")
            time.sleep(0.1)
        return LaunchResult(cmd, False, "Browser launch timed out")

    def stop(self, *, timeout: float = 2.0) -> bool:
        """Best-effort stop of the launcher-owned browser process."""
        proc = self.process
        if proc is None:
            return False
        if proc.poll() is not None:
            return True
        with contextlib.suppress(OSError):
            proc.terminate()
        try:
            proc.wait(timeout=max(0.1, float(timeout)))
        except subprocess.TimeoutExpired:
            with contextlib.suppress(OSError):
                proc.kill()
        return True

    def list_targets(self) -> list[dict[str, Any]]:
        try:
            payload = http_get_json(self._endpoint("/json/list"), timeout=0.8)
        except HttpClientError:
            return []
        return [t for t in payload if isinstance(t, dict)] if isinstance(payload, list) else []
