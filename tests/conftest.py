from __future__ import annotations

import pytest

from shells.project_docs.config import ShellConfig
from tests.fakes import FakeHost


@pytest.fixture
def config(tmp_path) -> ShellConfig:
    return ShellConfig(
        binary_path="/bin/true",
        profile_path=str(tmp_path / "profile"),
        reload_delay_ms=60,
        refetch_delay_ms=20,
    )


@pytest.fixture
def host() -> FakeHost:
    return FakeHost("https://claude.ai/projects")
