"""Append-only JSONL journal of order attempts and outcomes."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

logger = logging.getLogger(__name__)


def _json_safe(value):
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_json_safe(item) for item in value]
    if isinstance(value, dict):
        return {str(k): _json_safe(v) for k, v in value.items()}
    return str(value)


class OrderJournal:
    """Writes one line per order event under ``<root>/orders_<YYYYMMDD>.jsonl``."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, day: datetime | None = None) -> Path:
        day = day or datetime.now(timezone.utc)
        return self.root / f"orders_{day.strftime('%Y%m%d')}.jsonl"

    def record(self, event: str, **fields: Any) -> dict:
        entry = {"ts": time.time(), "event": event}
        entry.update({key: _json_safe(value) for key, value in fields.items()})
        path = self.path_for()
        try:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry) + "\n")
        except OSError as exc:
            logger.warning("Failed to append order journal %s: %s", path, exc)
        return entry

    def entries(self, day: datetime | None = None) -> Iterator[dict]:
        path = self.path_for(day)
        if not path.exists():
            return
        with path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed journal line in %s", path)


__all__ = ["OrderJournal"]
