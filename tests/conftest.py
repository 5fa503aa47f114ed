from __future__ import annotations

import asyncio
import inspect
from collections import deque
from typing import Any

import pytest

from signaldesk.brokers import BrokerConnection, BrokerMode, BrokerResolver


def pytest_pyfunc_call(pyfuncitem):  # type: ignore[override]
    marker = pyfuncitem.get_closest_marker("asyncio")
    if marker is None:
        return None
    func = pyfuncitem.obj
    if not inspect.iscoroutinefunction(func):
        return None
    argnames = getattr(pyfuncitem._fixtureinfo, "argnames", ())
    testargs = {name: pyfuncitem.funcargs[name] for name in argnames if name in pyfuncitem.funcargs}
    loop = asyncio.new_event_loop()
    try:
        loop.run_until_complete(func(**testargs))
    finally:
        loop.close()
    return True


class FakeWorkflowClient:
    """Records every call and answers from per-endpoint queues.

    A queued ``Exception`` instance is raised instead of returned. An
    ``asyncio.Event`` queued before a response makes the call wait for it.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []
        self.replies: dict[str, deque] = {}

    def queue(self, endpoint: str, *replies: Any) -> None:
        self.replies.setdefault(endpoint, deque()).extend(replies)

    async def _answer(self, endpoint: str, payload: Any) -> Any:
        self.calls.append((endpoint, payload))
        queue = self.replies.get(endpoint)
        if not queue:
            return {"success": True}
        reply = queue.popleft()
        if isinstance(reply, asyncio.Event):
            await reply.wait()
            reply = queue.popleft()
        if isinstance(reply, Exception):
            raise reply
        return reply

    def payloads(self, endpoint: str) -> list[Any]:
        return [payload for name, payload in self.calls if name == endpoint]

    async def find_contracts(self, payload: dict) -> Any:
        return await self._answer("find", payload)

    async def place_option_order(self, payload: dict) -> Any:
        return await self._answer("option", payload)

    async def place_equity_order(self, payload: dict) -> Any:
        return await self._answer("equity", payload)

    async def close_position(self, payload: dict) -> Any:
        return await self._answer("close", payload)

    async def trigger_rescan(self, *, strategy: str | None = None, triggered_by: str | None = None) -> Any:
        return await self._answer("scan", {"strategy": strategy, "triggered_by": triggered_by})


class FakeStateStore:
    """Serves signal timestamps from a queue; the last entry repeats once the queue drains."""

    def __init__(self) -> None:
        self.timestamp_reads: list[str] = []
        self.stamps: deque = deque()
        self.brokers: list[dict] | Exception = []
        self._last: Any = {}

    def queue_stamps(self, *stamps: Any) -> None:
        self.stamps.extend(stamps)

    async def signal_timestamps(self, table: str = "option_signals") -> dict[str, str]:
        self.timestamp_reads.append(table)
        reply = self.stamps.popleft() if self.stamps else self._last
        self._last = reply
        if isinstance(reply, Exception):
            raise reply
        return dict(reply)

    async def broker_connections(self, user_id: str | None = None) -> list[dict]:
        if isinstance(self.brokers, Exception):
            raise self.brokers
        return list(self.brokers)


@pytest.fixture
def workflow_client() -> FakeWorkflowClient:
    return FakeWorkflowClient()


@pytest.fixture
def state_store() -> FakeStateStore:
    return FakeStateStore()


def make_connection(
    conn_id: str = "b1",
    *,
    provider: str = "alpaca",
    mode: BrokerMode = BrokerMode.PAPER,
    is_active: bool = True,
    is_default: bool = False,
    created_at: str = "2026-01-01T00:00:00Z",
) -> BrokerConnection:
    return BrokerConnection(
        id=conn_id,
        name=f"{provider}-{conn_id}",
        provider=provider,
        mode=mode,
        is_active=is_active,
        is_default=is_default,
        created_at=created_at,
    )


@pytest.fixture
def paper_resolver() -> BrokerResolver:
    return BrokerResolver([make_connection("paper-1", is_default=True)])


@pytest.fixture
def live_resolver() -> BrokerResolver:
    return BrokerResolver([make_connection("live-1", provider="schwab", mode=BrokerMode.LIVE, is_default=True)])


@pytest.fixture
def connection_factory():
    return make_connection
