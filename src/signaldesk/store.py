"""Read access to persisted dashboard state (signals, broker connections)."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from signaldesk.config import DeskSettings

logger = logging.getLogger(__name__)

OPTION_SIGNAL_TABLE = "option_signals"
STOCK_SIGNAL_TABLE = "stock_signals"
BROKER_TABLE = "broker_credentials"

SCAN_TABLES = {
    "day_trade": "day_trade",
}


def scan_table_for(strategy: str | None) -> str:
    return SCAN_TABLES.get(strategy or "", OPTION_SIGNAL_TABLE)


class StoreError(RuntimeError):
    def __init__(self, status_code: int, payload: Any):
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"State store error ({status_code}): {payload}")


class StateStore:
    """PostgREST-style reader over httpx.AsyncClient."""

    def __init__(self, settings: DeskSettings, *, timeout: float | None = None):
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=f"{settings.store_base}/rest/v1",
            timeout=timeout if timeout is not None else settings.http_timeout,
            headers={
                "apikey": settings.store_key,
                "Authorization": f"Bearer {settings.store_key}",
                "Accept": "application/json",
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _select(self, table: str, params: dict[str, str]) -> list[dict]:
        try:
            response = await self._client.request("GET", f"/{table}", params=params)
        except httpx.HTTPError as exc:
            raise StoreError(-1, f"HTTP client error: {exc}") from exc
        if response.status_code >= 400:
            try:
                payload: Any = response.json()
            except ValueError:
                payload = response.text
            raise StoreError(response.status_code, payload)
        try:
            rows = response.json()
        except ValueError as exc:
            raise StoreError(response.status_code, response.text) from exc
        if not isinstance(rows, list):
            raise StoreError(response.status_code, rows)
        return [row for row in rows if isinstance(row, dict)]

    async def signal_timestamps(self, table: str = OPTION_SIGNAL_TABLE) -> dict[str, str]:
        """Return ``{symbol: analyzed_at}`` for the latest signal rows of ``table``."""
        rows = await self._select(table, {"select": "symbol,analyzed_at", "is_latest": "eq.true"})
        stamps: dict[str, str] = {}
        for row in rows:
            symbol = row.get("symbol")
            if not symbol:
                continue
            stamps[str(symbol)] = str(row.get("analyzed_at") or "")
        return stamps

    async def latest_signals(self, table: str = OPTION_SIGNAL_TABLE) -> list[dict]:
        return await self._select(
            table,
            {"select": "*", "is_latest": "eq.true", "order": "analyzed_at.desc"},
        )

    async def broker_connections(self, user_id: str | None = None) -> list[dict]:
        params = {"select": "*", "order": "is_default.desc,created_at.desc"}
        if user_id:
            params["user_id"] = f"eq.{user_id}"
        return await self._select(BROKER_TABLE, params)


__all__ = [
    "StateStore",
    "StoreError",
    "scan_table_for",
    "OPTION_SIGNAL_TABLE",
    "STOCK_SIGNAL_TABLE",
    "BROKER_TABLE",
    "SCAN_TABLES",
]
