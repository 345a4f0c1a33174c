from __future__ import annotations

from shells.project_docs.config import ShellConfig


def test_from_env_defaults(monkeypatch, tmp_path) -> None:
    for name in (
        "DOCS_SHELL_CDP_PORT",
        "DOCS_SHELL_MODE",
        "DOCS_SHELL_BROWSER_FLAGS",
        "DOCS_SHELL_HEADLESS",
        "DOCS_SHELL_START_URL",
        "DOCS_SHELL_APP_HOST",
        "DOCS_SHELL_API_BASE",
        "DOCS_SHELL_MARKER",
        "DOCS_SHELL_RELOAD_DELAY_MS",
        "DOCS_SHELL_REFETCH_DELAY_MS",
        "DOCS_SHELL_CDP_TIMEOUT",
        "DOCS_SHELL_PROJECT_ROOT",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("DOCS_SHELL_BROWSER_BINARY", "/bin/true")
    monkeypatch.setenv("DOCS_SHELL_PROFILE", str(tmp_path / "profile"))

    cfg = ShellConfig.from_env()
    assert cfg.binary_path == "/bin/true"
    assert cfg.profile_path == str(tmp_path / "profile")
    assert cfg.cdp_port == 9222
    assert cfg.mode == "launch"
    assert cfg.extra_flags == []
    assert cfg.headless is False
    assert cfg.start_url == "https://claude.ai/projects"
    assert cfg.app_host == "claude.ai"
    assert cfg.reload_delay_ms == 1500
    assert cfg.refetch_delay_ms == 250
    assert cfg.project_root is None


def test_from_env_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("DOCS_SHELL_BROWSER_BINARY", "/bin/true")
    monkeypatch.setenv("DOCS_SHELL_CDP_PORT", "9333")
    monkeypatch.setenv("DOCS_SHELL_MODE", "Connect")
    monkeypatch.setenv("DOCS_SHELL_BROWSER_FLAGS", "--lang=en, ,--mute-audio")
    monkeypatch.setenv("DOCS_SHELL_HEADLESS", "yes")
    monkeypatch.setenv("DOCS_SHELL_API_BASE", "https://api.example.test/")
    monkeypatch.setenv("DOCS_SHELL_APP_HOST", " Docs.Example.Test ")
    monkeypatch.setenv("DOCS_SHELL_RELOAD_DELAY_MS", "-5")
    monkeypatch.setenv("DOCS_SHELL_REFETCH_DELAY_MS", "oops")
    monkeypatch.setenv("DOCS_SHELL_CDP_TIMEOUT", "0.1")
    monkeypatch.setenv("DOCS_SHELL_PROJECT_ROOT", str(tmp_path))

    cfg = ShellConfig.from_env()
    assert cfg.cdp_port == 9333
    assert cfg.mode == "attach"
    assert cfg.extra_flags == ["--lang=en", "--mute-audio"]
    assert cfg.headless is True
    assert cfg.api_base == "https://api.example.test"
    assert cfg.app_host == "docs.example.test"
    assert cfg.reload_delay_ms == 0
    assert cfg.refetch_delay_ms == 250
    assert cfg.cdp_timeout == 1.0
    assert cfg.project_root == str(tmp_path)


def test_normalize_mode() -> None:
    assert ShellConfig.normalize_mode(None) == "launch"
    assert ShellConfig.normalize_mode("external") == "attach"
    assert ShellConfig.normalize_mode("whatever") == "launch"


def test_docs_urls(tmp_path) -> None:
    cfg = ShellConfig(binary_path="/bin/true", profile_path=str(tmp_path))
    assert cfg.docs_collection_url("o", "p") == "https://api.claude.ai/api/organizations/o/projects/p/docs"
    assert cfg.docs_item_url("o", "p", "u1") == "https://api.claude.ai/api/organizations/o/projects/p/docs/u1"
