#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

print(
    f"[docs-shell] binary={os.environ.get('DOCS_SHELL_BROWSER_BINARY', 'auto')} | "
    f"profile={os.environ.get('DOCS_SHELL_PROFILE', '~/.local/share/project-docs-shell/browser-profile')} | "
    f"port={os.environ.get('DOCS_SHELL_CDP_PORT', '9222')} | "
    f"mode={os.environ.get('DOCS_SHELL_MODE', 'launch')}",
    file=sys.stderr,
)

from shells.project_docs.main import main  # noqa: E402

if __name__ == "__main__":
    main()
