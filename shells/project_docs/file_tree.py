"""Local project files offered for tracking and as autocomplete suggestions."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

logger = logging.getLogger("docs_shell.file_tree")

MAX_TRACKED_FILE_BYTES = 5 * 1024 * 1024


class NamedFile(Protocol):
    name: str


class ProjectFileSource(Protocol):
    def get_all_project_files(self) -> Iterable[NamedFile]: ...


@dataclass(frozen=True)
class ProjectFile:
    name: str
    path: Path


class ProjectFolder:
    """ProjectFileSource backed by a directory on disk."""

    def __init__(self, root: str | os.PathLike[str], *, include_hidden: bool = False) -> None:
        self.root = Path(root).expanduser()
        self.include_hidden = include_hidden

    def _hidden(self, name: str) -> bool:
        return not self.include_hidden and name.startswith(".")

    def get_all_project_files(self) -> list[ProjectFile]:
        if not self.root.is_dir():
            return []
        out: list[ProjectFile] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if not self._hidden(d))
            for fname in sorted(filenames):
                if self._hidden(fname):
                    continue
                out.append(ProjectFile(name=fname, path=Path(dirpath) / fname))
        return out

    def find(self, name: str) -> ProjectFile | None:
        """First file whose name matches exactly, or whose path relative to root does."""
        wanted = name.replace("\\", "/").strip("/")
        for f in self.get_all_project_files():
            if f.name == wanted or f.path.relative_to(self.root).as_posix() == wanted:
                return f
        return None

    def read_text(self, file: ProjectFile | str) -> str:
        path = file.path if isinstance(file, ProjectFile) else self.root / file
        size = path.stat().st_size
        if size > MAX_TRACKED_FILE_BYTES:
            raise ValueError(f"{path.name} is too large to track ({size} bytes)")
        return path.read_text(encoding="utf-8", errors="replace")


__all__ = ["MAX_TRACKED_FILE_BYTES", "NamedFile", "ProjectFile", "ProjectFileSource", "ProjectFolder"]
