"""Broker connection records consumed by order workflows."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping


class BrokerMode(str, Enum):
    PAPER = "paper"
    LIVE = "live"

    @classmethod
    def parse(cls, raw: Any) -> "BrokerMode":
        return cls.LIVE if str(raw or "").strip().lower() == "live" else cls.PAPER


@dataclass(frozen=True, slots=True)
class BrokerConnection:
    id: str
    name: str
    provider: str
    mode: BrokerMode = BrokerMode.PAPER
    is_active: bool = True
    is_default: bool = False
    created_at: str = ""

    @property
    def is_live(self) -> bool:
        return self.mode is BrokerMode.LIVE

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "BrokerConnection":
        provider = str(row.get("broker_name") or row.get("provider") or "").lower()
        return cls(
            id=str(row["id"]),
            name=str(row.get("display_name") or row.get("nickname") or provider or row["id"]),
            provider=provider,
            mode=BrokerMode.parse(row.get("broker_mode") or row.get("mode")),
            is_active=bool(row.get("is_active", True)),
            is_default=bool(row.get("is_default", False)),
            created_at=str(row.get("created_at") or ""),
        )

    def as_payload(self) -> dict[str, Any]:
        return {
            "broker_id": self.id,
            "broker_name": self.provider,
            "broker_mode": self.mode.value,
        }


__all__ = ["BrokerConnection", "BrokerMode"]
