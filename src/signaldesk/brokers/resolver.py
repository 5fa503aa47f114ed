"""Active broker resolution.

The active connection is derived from the current connection list plus the
last explicit selection. Resolution re-runs every time the list changes:

1. keep the selected connection if it is still present and active;
2. otherwise take the active default connection;
3. otherwise take the first active connection;
4. otherwise nothing is selectable.
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Any

from signaldesk.brokers.models import BrokerConnection
from signaldesk.store import StateStore, StoreError

logger = logging.getLogger(__name__)


def _ordered(connections: Iterable[BrokerConnection]) -> list[BrokerConnection]:
    # default first, then most recently created
    by_created = sorted(connections, key=lambda c: c.created_at, reverse=True)
    return sorted(by_created, key=lambda c: not c.is_default)


class BrokerResolver:
    def __init__(self, connections: Iterable[BrokerConnection] = ()) -> None:
        self._connections: list[BrokerConnection] = []
        self._selected_id: str | None = None
        self.set_connections(connections)

    def list(self) -> list[BrokerConnection]:
        return list(self._connections)

    @property
    def active(self) -> BrokerConnection | None:
        if self._selected_id is None:
            return None
        for conn in self._connections:
            if conn.id == self._selected_id and conn.is_active:
                return conn
        return None

    @property
    def selected_id(self) -> str | None:
        return self._selected_id

    def select(self, broker_id: str) -> None:
        """Explicitly select an active connection; unknown or inactive ids are ignored."""
        for conn in self._connections:
            if conn.id == broker_id and conn.is_active:
                self._selected_id = conn.id
                return
        logger.debug("Ignoring selection of unavailable broker %s", broker_id)

    def set_connections(self, connections: Iterable[BrokerConnection]) -> None:
        self._connections = _ordered(connections)
        defaults = [c for c in self._connections if c.is_default]
        if len(defaults) > 1:
            logger.warning("%d default broker connections; using %s", len(defaults), defaults[0].id)
        self._selected_id = self._resolve()

    def set_records(self, rows: Iterable[Mapping[str, Any]]) -> None:
        self.set_connections(BrokerConnection.from_record(row) for row in rows)

    def _resolve(self) -> str | None:
        active = [c for c in self._connections if c.is_active]
        if self._selected_id and any(c.id == self._selected_id for c in active):
            return self._selected_id
        for conn in active:
            if conn.is_default:
                return conn.id
        return active[0].id if active else None

    async def refresh(self, store: StateStore, user_id: str | None = None) -> list[BrokerConnection]:
        """Reload connections from persisted state, keeping the previous list on failure."""
        try:
            rows = await store.broker_connections(user_id)
        except StoreError as exc:
            logger.warning("Failed to load broker connections: %s", exc)
            return self.list()
        self.set_records(rows)
        return self.list()


__all__ = ["BrokerResolver"]
