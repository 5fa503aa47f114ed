from __future__ import annotations

from pathlib import Path

import pytest

from signaldesk.config import DeskSettings


@pytest.fixture
def env(monkeypatch):
    for name in (
        "SIGNALDESK_WORKFLOW_BASE",
        "SIGNALDESK_HTTP_TIMEOUT",
        "SIGNALDESK_OPTION_FEE",
        "SIGNALDESK_JOURNAL_DIR",
        "SIGNALDESK_SCAN_TIMEOUT_SECONDS",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("SIGNALDESK_STORE_BASE", "https://db.example.com/")
    monkeypatch.setenv("SIGNALDESK_STORE_KEY", "anon-key")
    return monkeypatch


def test_defaults(env):
    settings = DeskSettings.from_env()
    assert settings.workflow_base == "http://localhost:5678"
    assert settings.store_base == "https://db.example.com"
    assert settings.option_fee == 0.65
    assert settings.scan_poll_seconds == 5.0
    assert settings.scan_timeout_seconds == 120.0
    assert settings.journal_dir is None


def test_overrides(env):
    env.setenv("SIGNALDESK_WORKFLOW_BASE", "https://flows.example.com/")
    env.setenv("SIGNALDESK_SCAN_TIMEOUT_SECONDS", "30")
    env.setenv("SIGNALDESK_JOURNAL_DIR", "/tmp/journal")
    settings = DeskSettings.from_env()
    assert settings.workflow_base == "https://flows.example.com"
    assert settings.scan_timeout_seconds == 30.0
    assert settings.journal_dir == Path("/tmp/journal")


def test_missing_store_key(env):
    env.delenv("SIGNALDESK_STORE_KEY")
    with pytest.raises(RuntimeError, match="SIGNALDESK_STORE_KEY"):
        DeskSettings.from_env()


def test_non_numeric_value(env):
    env.setenv("SIGNALDESK_HTTP_TIMEOUT", "soon")
    with pytest.raises(RuntimeError, match="SIGNALDESK_HTTP_TIMEOUT"):
        DeskSettings.from_env()
