"""Configuration helpers for the signal desk."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be numeric, got {raw!r}") from exc


@dataclass(slots=True)
class DeskSettings:
    workflow_base: str
    store_base: str
    store_key: str
    http_timeout: float = 30.0
    default_budget: float = 300.0
    option_fee: float = 0.65
    scan_poll_seconds: float = 5.0
    scan_timeout_seconds: float = 120.0
    scan_done_seconds: float = 2.5
    scan_error_seconds: float = 3.0
    journal_dir: Path | None = None

    @classmethod
    def from_env(cls) -> "DeskSettings":
        workflow_base = os.getenv("SIGNALDESK_WORKFLOW_BASE", "http://localhost:5678").rstrip("/")
        store_base = os.getenv("SIGNALDESK_STORE_BASE")
        if not store_base:
            raise RuntimeError("SIGNALDESK_STORE_BASE is required to reach persisted signals")
        store_key = os.getenv("SIGNALDESK_STORE_KEY")
        if not store_key:
            raise RuntimeError("SIGNALDESK_STORE_KEY is required to reach persisted signals")
        journal_raw = os.getenv("SIGNALDESK_JOURNAL_DIR")
        return cls(
            workflow_base=workflow_base,
            store_base=store_base.rstrip("/"),
            store_key=store_key,
            http_timeout=_env_float("SIGNALDESK_HTTP_TIMEOUT", 30.0),
            default_budget=_env_float("SIGNALDESK_DEFAULT_BUDGET", 300.0),
            option_fee=_env_float("SIGNALDESK_OPTION_FEE", 0.65),
            scan_poll_seconds=_env_float("SIGNALDESK_SCAN_POLL_SECONDS", 5.0),
            scan_timeout_seconds=_env_float("SIGNALDESK_SCAN_TIMEOUT_SECONDS", 120.0),
            scan_done_seconds=_env_float("SIGNALDESK_SCAN_DONE_SECONDS", 2.5),
            scan_error_seconds=_env_float("SIGNALDESK_SCAN_ERROR_SECONDS", 3.0),
            journal_dir=Path(journal_raw) if journal_raw else None,
        )


__all__ = ["DeskSettings"]
