from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class ScanStatus(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DONE = "done"
    ERROR = "error"


def _parse_ts(raw: str) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None


def is_newer(current: str, prior: str) -> bool:
    """True when ``current`` is strictly later than ``prior``.

    ISO timestamps are compared as datetimes; anything unparseable falls back
    to plain string ordering.
    """
    current_ts, prior_ts = _parse_ts(current), _parse_ts(prior)
    if current_ts is not None and prior_ts is not None:
        try:
            return current_ts > prior_ts
        except TypeError:
            # naive vs aware
            pass
    return current > prior


@dataclass(frozen=True, slots=True)
class ScanSnapshot:
    """Per-symbol ``analyzed_at`` captured right before a rescan is triggered."""

    timestamps: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def capture(cls, stamps: Mapping[str, str]) -> "ScanSnapshot":
        return cls(timestamps=MappingProxyType(dict(stamps)))

    def __len__(self) -> int:
        return len(self.timestamps)

    def updated_count(self, current: Mapping[str, str]) -> int:
        """Symbols that are new since the snapshot or carry a newer timestamp."""
        count = 0
        for symbol, stamp in current.items():
            prior = self.timestamps.get(symbol)
            if not prior or is_newer(stamp or "", prior):
                count += 1
        return count


@dataclass(frozen=True, slots=True)
class ScanProgressState:
    status: ScanStatus = ScanStatus.IDLE
    updated: int = 0
    total: int = 0
    message: str = ""
    error: str | None = None

    @classmethod
    def scanning(cls, updated: int, total: int) -> "ScanProgressState":
        return cls(
            status=ScanStatus.SCANNING,
            updated=updated,
            total=total,
            message=f"Scanning... {updated}/{total} stocks updated",
        )


__all__ = ["ScanProgressState", "ScanSnapshot", "ScanStatus", "is_newer"]
