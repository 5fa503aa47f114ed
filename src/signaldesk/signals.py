from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


def _float_or_none(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(slots=True)
class OptionSignal:
    """Latest option signal row for one underlying."""

    id: str | None
    symbol: str
    current_price: float
    option_type: str
    tier: str | None = None
    trading_recommendation: str | None = None
    gates_passed: str | None = None
    analyzed_at: str | None = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "OptionSignal":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            symbol=str(row.get("symbol", "")).upper(),
            current_price=_float_or_none(row.get("current_price")) or 0.0,
            option_type=str(row.get("option_type") or "CALL").upper(),
            tier=row.get("tier"),
            trading_recommendation=row.get("trading_recommendation"),
            gates_passed=row.get("gates_passed"),
            analyzed_at=row.get("analyzed_at"),
        )


@dataclass(slots=True)
class StockSignal:
    """Latest equity signal row for one symbol."""

    id: str | None
    symbol: str
    signal_type: str
    current_price: float
    confidence: str | None = None
    entry_price: float | None = None
    target_price: float | None = None
    stop_loss: float | None = None
    analyzed_at: str | None = None

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "StockSignal":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            symbol=str(row.get("symbol", "")).upper(),
            signal_type=str(row.get("signal_type") or "WAIT").upper(),
            current_price=_float_or_none(row.get("current_price")) or 0.0,
            confidence=row.get("confidence"),
            entry_price=_float_or_none(row.get("entry_price")),
            target_price=_float_or_none(row.get("target_price")),
            stop_loss=_float_or_none(row.get("stop_loss")),
            analyzed_at=row.get("analyzed_at"),
        )


__all__ = ["OptionSignal", "StockSignal"]
