from __future__ import annotations

import json

import httpx
import pytest

from signaldesk.config import DeskSettings
from signaldesk.store import StateStore, StoreError, scan_table_for


class DummyResponse:
    def __init__(self, status_code: int, payload):
        self.status_code = status_code
        self._payload = payload
        self.headers = {"content-type": "application/json"}
        self.content = json.dumps(payload).encode()

    def json(self):
        return self._payload

    @property
    def text(self):
        return json.dumps(self._payload)


class DummyAsyncClient:
    def __init__(self):
        self.routes: dict[str, DummyResponse | Exception] = {}
        self.params: list[dict] = []
        self.kwargs: dict = {}

    async def request(self, method: str, path: str, json=None, params=None):
        self.params.append(dict(params or {}))
        route = self.routes[path]
        if isinstance(route, Exception):
            raise route
        return route

    async def aclose(self):  # pragma: no cover - nothing to close
        return None


@pytest.fixture
def dummy(monkeypatch):
    client = DummyAsyncClient()

    def factory(**kwargs):
        client.kwargs = kwargs
        return client

    monkeypatch.setattr("signaldesk.store.httpx.AsyncClient", factory)
    return client


def settings() -> DeskSettings:
    return DeskSettings(workflow_base="http://wf", store_base="http://db.test", store_key="secret")


def test_scan_table_for():
    assert scan_table_for("day_trade") == "day_trade"
    assert scan_table_for("swing") == "option_signals"
    assert scan_table_for(None) == "option_signals"


@pytest.mark.asyncio
async def test_signal_timestamps_filters_latest(dummy):
    dummy.routes["/option_signals"] = DummyResponse(
        200,
        [
            {"symbol": "AAPL", "analyzed_at": "2026-10-16T13:00:00Z"},
            {"symbol": None, "analyzed_at": "x"},
            {"symbol": "MSFT", "analyzed_at": None},
        ],
    )
    store = StateStore(settings())
    stamps = await store.signal_timestamps()
    assert stamps == {"AAPL": "2026-10-16T13:00:00Z", "MSFT": ""}
    assert dummy.params[0] == {"select": "symbol,analyzed_at", "is_latest": "eq.true"}
    assert dummy.kwargs["base_url"] == "http://db.test/rest/v1"
    assert dummy.kwargs["headers"]["apikey"] == "secret"
    assert dummy.kwargs["headers"]["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_broker_connections_orders_and_filters(dummy):
    dummy.routes["/broker_credentials"] = DummyResponse(200, [{"id": "b"}])
    store = StateStore(settings())
    assert await store.broker_connections("u-1") == [{"id": "b"}]
    assert dummy.params[0]["order"] == "is_default.desc,created_at.desc"
    assert dummy.params[0]["user_id"] == "eq.u-1"


@pytest.mark.asyncio
async def test_http_error_raises_store_error(dummy):
    dummy.routes["/option_signals"] = DummyResponse(401, {"message": "JWT expired"})
    store = StateStore(settings())
    with pytest.raises(StoreError) as exc:
        await store.signal_timestamps()
    assert exc.value.status_code == 401


@pytest.mark.asyncio
async def test_transport_error_raises_store_error(dummy):
    dummy.routes["/day_trade"] = httpx.ReadTimeout("timed out")
    store = StateStore(settings())
    with pytest.raises(StoreError) as exc:
        await store.signal_timestamps("day_trade")
    assert exc.value.status_code == -1


@pytest.mark.asyncio
async def test_non_list_body_is_an_error(dummy):
    dummy.routes["/option_signals"] = DummyResponse(200, {"unexpected": True})
    store = StateStore(settings())
    with pytest.raises(StoreError):
        await store.latest_signals()
