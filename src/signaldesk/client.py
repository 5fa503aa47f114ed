"""HTTP client for the external order/scan workflow service."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from signaldesk.config import DeskSettings

logger = logging.getLogger(__name__)

SCAN_WEBHOOKS = {
    "day_trade": "/webhook/scan-options-daytrade",
}
DEFAULT_SCAN_WEBHOOK = "/webhook/scan-options"


class WorkflowAPIError(RuntimeError):
    """Raised when a workflow call fails at the transport or HTTP level.

    ``status_code`` is -1 when the request never completed.
    """

    def __init__(self, status_code: int, payload: Any):
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"Workflow API error ({status_code}): {payload}")

    @property
    def is_transport(self) -> bool:
        return self.status_code == -1


class WorkflowClient:
    def __init__(self, settings: DeskSettings, *, timeout: float | None = None):
        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.workflow_base,
            timeout=timeout if timeout is not None else settings.http_timeout,
            headers={
                "Content-Type": "application/json",
                "X-Signaldesk-Client": "desk",
            },
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: Any | None = None, params: dict | None = None) -> Any:
        try:
            response = await self._client.request(method, path, json=json, params=params)
        except httpx.HTTPError as exc:
            raise WorkflowAPIError(-1, f"HTTP client error: {exc}") from exc
        if response.status_code >= 400:
            payload: Any
            try:
                payload = response.json()
            except ValueError:
                payload = response.text
            raise WorkflowAPIError(response.status_code, payload)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def find_contracts(self, payload: dict) -> Any:
        logger.debug("find-option %s %s-%s DTE", payload.get("symbol"), payload.get("dte_min"), payload.get("dte_max"))
        return await self._request("POST", "/webhook/find-option", json=payload)

    async def place_option_order(self, payload: dict) -> Any:
        return await self._request("POST", "/webhook/execute-option-trade", json=payload)

    async def place_equity_order(self, payload: dict) -> Any:
        return await self._request("POST", "/webhook/execute-stock-trade", json=payload)

    async def close_position(self, payload: dict) -> Any:
        return await self._request("POST", "/webhook/sell-option", json=payload)

    async def trigger_rescan(self, *, strategy: str | None = None, triggered_by: str | None = None) -> Any:
        path = SCAN_WEBHOOKS.get(strategy or "", DEFAULT_SCAN_WEBHOOK)
        return await self._request("POST", path, json={"triggered_by": triggered_by or "manual"})

    @property
    def base_url(self) -> str:
        return self._settings.workflow_base


__all__ = ["WorkflowClient", "WorkflowAPIError", "SCAN_WEBHOOKS", "DEFAULT_SCAN_WEBHOOK"]
