from __future__ import annotations

import asyncio

import pytest

from signaldesk.client import WorkflowAPIError
from signaldesk.scan.models import ScanSnapshot, ScanStatus
from signaldesk.scan.tracker import DONE_MESSAGE, FAILED_MESSAGE, UNREACHABLE_DETAIL, ScanProgressTracker
from signaldesk.store import StoreError

T0 = "2026-10-16T13:00:00+00:00"
T1 = "2026-10-16T13:05:00+00:00"


def make_tracker(client, store, **kwargs) -> tuple[ScanProgressTracker, list]:
    seen: list = []
    kwargs.setdefault("poll_seconds", 0.01)
    kwargs.setdefault("timeout_seconds", 1.0)
    kwargs.setdefault("done_seconds", 0.05)
    kwargs.setdefault("error_seconds", 0.05)
    tracker = ScanProgressTracker(client, store, listener=seen.append, **kwargs)
    return tracker, seen


def test_snapshot_counts_new_and_newer_symbols():
    snapshot = ScanSnapshot.capture({"A": T0, "B": T0})
    assert snapshot.updated_count({"A": T1, "B": T0, "C": T0}) == 2
    with pytest.raises(TypeError):
        snapshot.timestamps["A"] = T1


def test_snapshot_compares_mixed_timestamp_formats():
    snapshot = ScanSnapshot.capture({"A": "2026-10-16T13:00:00Z"})
    assert snapshot.updated_count({"A": "2026-10-16T13:00:00.250000+00:00"}) == 1
    assert snapshot.updated_count({"A": "2026-10-16T13:00:00+00:00"}) == 0


@pytest.mark.asyncio
async def test_scan_converges_with_new_symbol(workflow_client, state_store):
    before = {sym: T0 for sym in "ABCDE"}
    first_poll = {"A": T1, "B": T1, "C": T1, "D": T0, "E": T0, "F": T1}
    second_poll = {sym: T1 for sym in "ABCDEF"}
    state_store.queue_stamps(before, first_poll, second_poll)
    reloads = []

    async def reload():
        reloads.append(True)

    tracker, seen = make_tracker(workflow_client, state_store)
    assert await tracker.start_scan(reload) is True
    assert tracker.state.status is ScanStatus.SCANNING
    assert seen[0].message == "Scanning... 0/5 stocks updated"

    final = await tracker.wait()
    assert final.status is ScanStatus.DONE
    assert final.message == DONE_MESSAGE
    assert any(s.updated == 4 and s.total == 6 and s.message == "Scanning... 4/6 stocks updated" for s in seen)
    assert reloads == [True]
    assert not tracker.timers_active
    assert len(tracker.snapshot) == 5
    tracker.stop()


@pytest.mark.asyncio
async def test_timeout_forces_done(workflow_client, state_store):
    state_store.queue_stamps({"A": T0, "B": T0})
    reloads = []
    tracker, _ = make_tracker(workflow_client, state_store, timeout_seconds=0.05)
    await tracker.start_scan(lambda: reloads.append(True))
    final = await asyncio.wait_for(tracker.wait(), timeout=2)
    assert final.status is ScanStatus.DONE
    assert reloads == [True]
    assert not tracker.timers_active
    tracker.stop()


@pytest.mark.asyncio
async def test_trigger_failure_goes_to_error_then_idle(workflow_client, state_store):
    state_store.queue_stamps({"A": T0})
    workflow_client.queue("scan", WorkflowAPIError(-1, "HTTP client error: unreachable"))
    tracker, _ = make_tracker(workflow_client, state_store)
    assert await tracker.start_scan() is False
    assert tracker.state.status is ScanStatus.ERROR
    assert tracker.state.message == FAILED_MESSAGE
    assert tracker.state.error == UNREACHABLE_DETAIL
    assert not tracker.timers_active
    await asyncio.sleep(0.15)
    assert tracker.state.status is ScanStatus.IDLE
    assert state_store.timestamp_reads == ["option_signals"]


@pytest.mark.asyncio
async def test_http_answer_from_trigger_still_polls(workflow_client, state_store):
    state_store.queue_stamps({"A": T0}, {"A": T1})
    workflow_client.queue("scan", WorkflowAPIError(502, "Bad Gateway"))
    tracker, _ = make_tracker(workflow_client, state_store)
    assert await tracker.start_scan() is True
    assert (await tracker.wait()).status is ScanStatus.DONE
    tracker.stop()


@pytest.mark.asyncio
async def test_second_start_while_scanning_is_ignored(workflow_client, state_store):
    state_store.queue_stamps({"A": T0, "B": T0})
    tracker, seen = make_tracker(workflow_client, state_store, poll_seconds=0.5)
    await tracker.start_scan()
    snapshot_state = tracker.state
    events = len(seen)
    assert await tracker.start_scan() is False
    assert tracker.state is snapshot_state
    assert len(seen) == events
    assert len(workflow_client.payloads("scan")) == 1
    tracker.stop()


@pytest.mark.asyncio
async def test_snapshot_failure_is_tolerated(workflow_client, state_store):
    state_store.queue_stamps(StoreError(-1, "down"), {"A": T1})
    tracker, seen = make_tracker(workflow_client, state_store)
    assert await tracker.start_scan() is True
    assert seen[0].total == 1
    assert (await tracker.wait()).status is ScanStatus.DONE
    tracker.stop()


@pytest.mark.asyncio
async def test_poll_errors_are_tolerated(workflow_client, state_store):
    state_store.queue_stamps({"A": T0}, StoreError(500, "oops"), {"A": T1})
    tracker, _ = make_tracker(workflow_client, state_store)
    await tracker.start_scan()
    assert (await tracker.wait()).status is ScanStatus.DONE
    assert len(state_store.timestamp_reads) == 3
    tracker.stop()


@pytest.mark.asyncio
async def test_stop_cancels_timers_without_finishing(workflow_client, state_store):
    state_store.queue_stamps({"A": T0})
    reloads = []
    tracker, _ = make_tracker(workflow_client, state_store, timeout_seconds=0.05)
    await tracker.start_scan(lambda: reloads.append(True))
    assert tracker.timers_active
    tracker.stop()
    assert not tracker.timers_active
    assert tracker.state.status is ScanStatus.IDLE
    await asyncio.sleep(0.1)
    assert reloads == []
    assert tracker.state.status is ScanStatus.IDLE


@pytest.mark.asyncio
async def test_done_resets_to_idle(workflow_client, state_store):
    state_store.queue_stamps({"A": T0}, {"A": T1})
    tracker, _ = make_tracker(workflow_client, state_store)
    await tracker.start_scan()
    await tracker.wait()
    await asyncio.sleep(0.15)
    assert tracker.state.status is ScanStatus.IDLE
    assert tracker.state.updated == 0 and tracker.state.total == 0


@pytest.mark.asyncio
async def test_day_trade_strategy_uses_its_table_and_reporter(workflow_client, state_store):
    state_store.queue_stamps({"A": T0}, {"A": T1})
    tracker, _ = make_tracker(workflow_client, state_store, strategy="day_trade", user_email="ops@example.com")
    await tracker.start_scan()
    await tracker.wait()
    assert set(state_store.timestamp_reads) == {"day_trade"}
    assert workflow_client.payloads("scan") == [{"strategy": "day_trade", "triggered_by": "ops@example.com"}]
    tracker.stop()


@pytest.mark.asyncio
async def test_listener_errors_do_not_break_scan(workflow_client, state_store):
    def broken(state):
        raise ValueError("render failed")

    state_store.queue_stamps({"A": T0}, {"A": T1})
    tracker = ScanProgressTracker(
        workflow_client, state_store, listener=broken, poll_seconds=0.01, timeout_seconds=1.0, done_seconds=0.05
    )
    await tracker.start_scan()
    assert (await tracker.wait()).status is ScanStatus.DONE
    tracker.stop()
