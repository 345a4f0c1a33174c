"""
Project docs shell entry point.

Launches (or attaches to) the browser, mirrors the remote project docs and keeps
running until interrupted.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os

from .config import ShellConfig
from .shell import DocsShell

logger = logging.getLogger("docs_shell")

__all__ = ["configure_logging", "main"]


def configure_logging() -> None:
    level_name = (os.environ.get("DOCS_SHELL_LOG_LEVEL") or "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format="%(asctime)s %(levelname)s %(message)s",
    )


def main() -> None:
    """Main entry point for the docs shell."""
    configure_logging()
    config = ShellConfig.from_env()
    logger.info(
        "docs_shell_starting mode=%s port=%s start_url=%s",
        config.mode,
        config.cdp_port,
        config.start_url,
    )
    shell = DocsShell(config)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(shell.run_forever())


if __name__ == "__main__":
    main()
