"""Rescan progress tracking.

A scan snapshots the latest ``analyzed_at`` per symbol, fires the rescan
webhook, then polls persisted state until every symbol reports a newer
timestamp or a hard deadline passes. The poll loop and the deadline run as two
asyncio tasks; both converge on ``_finish``, which runs once per scan and
cancels the other task before awaiting the reload callback.

Every scan gets a new scan id. Tasks compare their id with the tracker's
current one after each suspension point and exit quietly when it changed
(a newer scan started or ``stop()`` was called).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import replace
from typing import Awaitable, Callable, Optional, Union

from signaldesk.client import WorkflowAPIError, WorkflowClient
from signaldesk.config import DeskSettings
from signaldesk.scan.models import ScanProgressState, ScanSnapshot, ScanStatus
from signaldesk.store import StateStore, StoreError, scan_table_for

logger = logging.getLogger(__name__)

ReloadCallback = Callable[[], Union[Awaitable[None], None]]
ProgressListener = Callable[[ScanProgressState], None]

DONE_MESSAGE = "Updated!"
FAILED_MESSAGE = "Scan failed"
UNREACHABLE_DETAIL = "Could not reach scan service."


class ScanProgressTracker:
    def __init__(
        self,
        client: WorkflowClient,
        store: StateStore,
        *,
        settings: DeskSettings | None = None,
        strategy: str | None = None,
        user_email: str | None = None,
        listener: Optional[ProgressListener] = None,
        poll_seconds: float | None = None,
        timeout_seconds: float | None = None,
        done_seconds: float | None = None,
        error_seconds: float | None = None,
    ) -> None:
        self._client = client
        self._store = store
        self.strategy = strategy
        self.user_email = user_email
        self.listener = listener
        self.table = scan_table_for(strategy)
        self.poll_seconds = _pick(poll_seconds, settings, "scan_poll_seconds", 5.0)
        self.timeout_seconds = _pick(timeout_seconds, settings, "scan_timeout_seconds", 120.0)
        self.done_seconds = _pick(done_seconds, settings, "scan_done_seconds", 2.5)
        self.error_seconds = _pick(error_seconds, settings, "scan_error_seconds", 3.0)

        self._state = ScanProgressState()
        self._scan_id = 0
        self._starting = False
        self._finishing = False
        self._poll_task: asyncio.Task | None = None
        self._timeout_task: asyncio.Task | None = None
        self._reset_task: asyncio.Task | None = None
        self._ended: asyncio.Event | None = None
        self.snapshot: ScanSnapshot | None = None

    @property
    def state(self) -> ScanProgressState:
        return self._state

    @property
    def timers_active(self) -> bool:
        return any(t is not None and not t.done() for t in (self._poll_task, self._timeout_task))

    def _set(self, state: ScanProgressState) -> None:
        self._state = state
        if self.listener is None:
            return
        try:
            self.listener(state)
        except Exception:
            logger.exception("Scan progress listener failed")

    def _cancel_timers(self, *, include_reset: bool = False) -> None:
        current = asyncio.current_task()
        names = ["_poll_task", "_timeout_task"]
        if include_reset:
            names.append("_reset_task")
        for name in names:
            task = getattr(self, name)
            if task is not None and task is not current and not task.done():
                task.cancel()
            setattr(self, name, None)

    async def _snapshot(self) -> ScanSnapshot:
        try:
            stamps = await self._store.signal_timestamps(self.table)
        except StoreError as exc:
            logger.warning("Failed to snapshot pre-scan timestamps: %s", exc)
            stamps = {}
        return ScanSnapshot.capture(stamps)

    async def start_scan(self, on_complete: Optional[ReloadCallback] = None) -> bool:
        """Start a scan; returns False when one is already running or the trigger failed."""
        if self._starting or self._state.status is ScanStatus.SCANNING:
            return False
        self._starting = True
        try:
            self._cancel_timers(include_reset=True)
            self._scan_id += 1
            scan_id = self._scan_id
            self._finishing = False
            self._ended = asyncio.Event()

            snapshot = await self._snapshot()
            if scan_id != self._scan_id:
                return False
            self.snapshot = snapshot
            total = max(1, len(snapshot))
            self._set(ScanProgressState.scanning(0, total))
            logger.info("Scan started on %s (%d symbols)", self.table, len(snapshot))

            try:
                await self._client.trigger_rescan(strategy=self.strategy, triggered_by=self.user_email)
            except WorkflowAPIError as exc:
                if scan_id != self._scan_id:
                    return False
                if exc.is_transport:
                    logger.error("Scan webhook failed: %s", exc)
                    self._set(
                        ScanProgressState(
                            status=ScanStatus.ERROR,
                            total=total,
                            message=FAILED_MESSAGE,
                            error=UNREACHABLE_DETAIL,
                        )
                    )
                    self._reset_task = asyncio.create_task(self._reset_after(self.error_seconds, scan_id))
                    self._ended.set()
                    return False
                # fire-and-forget: an HTTP-level answer still means the service was reached
                logger.warning("Scan webhook answered %s; polling anyway", exc.status_code)
            if scan_id != self._scan_id:
                return False

            self._poll_task = asyncio.create_task(self._poll_loop(scan_id, snapshot, total, on_complete))
            self._timeout_task = asyncio.create_task(self._deadline(scan_id, on_complete))
            return True
        finally:
            self._starting = False

    async def _poll_loop(
        self,
        scan_id: int,
        snapshot: ScanSnapshot,
        total: int,
        on_complete: Optional[ReloadCallback],
    ) -> None:
        while True:
            await asyncio.sleep(self.poll_seconds)
            if scan_id != self._scan_id or self._finishing:
                return
            try:
                current = await self._store.signal_timestamps(self.table)
            except StoreError as exc:
                logger.warning("Scan poll error: %s", exc)
                continue
            if scan_id != self._scan_id or self._finishing:
                return
            updated = snapshot.updated_count(current)
            current_total = max(total, len(current))
            self._set(ScanProgressState.scanning(updated, current_total))
            if updated >= current_total:
                await self._finish(scan_id, on_complete)
                return

    async def _deadline(self, scan_id: int, on_complete: Optional[ReloadCallback]) -> None:
        await asyncio.sleep(self.timeout_seconds)
        if scan_id != self._scan_id:
            return
        logger.info("Scan timeout reached (%.0fs). Finishing scan.", self.timeout_seconds)
        await self._finish(scan_id, on_complete)

    async def _finish(self, scan_id: int, on_complete: Optional[ReloadCallback]) -> None:
        if self._finishing or scan_id != self._scan_id:
            return
        self._finishing = True
        self._cancel_timers()
        if on_complete is not None:
            try:
                result = on_complete()
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Scan reload callback failed")
        if scan_id != self._scan_id:
            return
        self._set(replace(self._state, status=ScanStatus.DONE, message=DONE_MESSAGE, error=None))
        logger.info("Scan finished: %d/%d updated", self._state.updated, self._state.total)
        self._reset_task = asyncio.create_task(self._reset_after(self.done_seconds, scan_id))
        if self._ended is not None:
            self._ended.set()

    async def _reset_after(self, delay: float, scan_id: int) -> None:
        await asyncio.sleep(delay)
        if scan_id != self._scan_id:
            return
        self._reset_task = None
        self._set(ScanProgressState())

    async def wait(self) -> ScanProgressState:
        """Wait until the current scan reaches ``done`` or ``error``."""
        if self._ended is not None:
            await self._ended.wait()
        return self._state

    def stop(self) -> None:
        """Tear down: cancel every timer and return to idle without finishing."""
        self._scan_id += 1
        self._finishing = False
        self._cancel_timers(include_reset=True)
        if self._ended is not None:
            self._ended.set()
        if self._state.status is not ScanStatus.IDLE:
            self._set(ScanProgressState())


def _pick(explicit: float | None, settings: DeskSettings | None, attr: str, default: float) -> float:
    if explicit is not None:
        return explicit
    if settings is not None:
        return getattr(settings, attr)
    return default


__all__ = ["ScanProgressTracker", "DONE_MESSAGE", "FAILED_MESSAGE", "UNREACHABLE_DETAIL"]
