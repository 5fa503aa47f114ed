"""Command-line entry point.

Examples:
    signaldesk classify "Refresh token expired, please reconnect"
    signaldesk brokers --user-id 7f3c...
    signaldesk signals --strategy day_trade
    signaldesk scan --strategy day_trade --user-email ops@example.com
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Sequence

from signaldesk.brokers import BrokerResolver
from signaldesk.client import WorkflowClient
from signaldesk.config import DeskSettings
from signaldesk.orders.errors import classify_blocking_error, remedy_for
from signaldesk.orders.pricing import trade_warnings
from signaldesk.scan.models import ScanProgressState, ScanStatus
from signaldesk.scan.tracker import ScanProgressTracker
from signaldesk.signals import OptionSignal, StockSignal
from signaldesk.store import STOCK_SIGNAL_TABLE, StateStore, StoreError, scan_table_for

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="signaldesk", description="Signal desk order and scan tooling.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    sub = parser.add_subparsers(dest="command", required=True)

    classify = sub.add_parser("classify", help="Classify a broker error message.")
    classify.add_argument("message", nargs="+", help="Error text returned by the order service.")
    classify.add_argument("--provider", default=None, help="Broker provider for remedy wording.")

    brokers = sub.add_parser("brokers", help="List broker connections and the active one.")
    brokers.add_argument("--user-id", default=None)

    signals = sub.add_parser("signals", help="List the latest signals.")
    signals.add_argument("--stocks", action="store_true", help="List equity signals instead of option signals.")
    signals.add_argument("--strategy", default=None, help="Option strategy table, e.g. day_trade.")

    scan = sub.add_parser("scan", help="Trigger a rescan and wait for completion.")
    scan.add_argument("--strategy", default=None, help="Strategy filter, e.g. day_trade.")
    scan.add_argument("--user-email", default=None)
    return parser.parse_args(argv)


def _cmd_classify(args: argparse.Namespace) -> int:
    message = " ".join(args.message)
    category = classify_blocking_error(message)
    if category is None:
        print("none")
        return 0
    remedy = remedy_for(category, provider=args.provider)
    print(category.value)
    print(f"  {remedy.title}: {remedy.message}")
    for label, value in remedy.details:
        print(f"  {label}: {value}")
    return 0


async def _cmd_brokers(args: argparse.Namespace, settings: DeskSettings) -> int:
    store = StateStore(settings)
    try:
        resolver = BrokerResolver()
        connections = await resolver.refresh(store, args.user_id)
    finally:
        await store.close()
    active = resolver.active
    for conn in connections:
        marker = "*" if active is not None and conn.id == active.id else " "
        flags = []
        if conn.is_default:
            flags.append("default")
        if not conn.is_active:
            flags.append("inactive")
        suffix = f" ({', '.join(flags)})" if flags else ""
        print(f"{marker} {conn.id}  {conn.name}  {conn.provider}  {conn.mode.value}{suffix}")
    if active is None:
        print("No active broker connection.")
        return 1
    return 0


async def _cmd_signals(args: argparse.Namespace, settings: DeskSettings) -> int:
    store = StateStore(settings)
    try:
        table = STOCK_SIGNAL_TABLE if args.stocks else scan_table_for(args.strategy)
        rows = await store.latest_signals(table)
    except StoreError as exc:
        logger.error("Could not read %s: %s", table, exc)
        return 1
    finally:
        await store.close()
    if args.stocks:
        for stock in (StockSignal.from_record(row) for row in rows):
            print(f"{stock.symbol:<6} {stock.signal_type:<5} {stock.current_price:>10.2f}  {stock.confidence or '-'}")
        return 0
    for option in (OptionSignal.from_record(row) for row in rows):
        warnings = trade_warnings(option.trading_recommendation, option.gates_passed, option.tier)
        flag = f"  ({len(warnings)} warnings)" if warnings else ""
        print(
            f"{option.symbol:<6} {option.option_type:<4} {option.tier or '-':<3} "
            f"{option.trading_recommendation or '-'}  gates {option.gates_passed or '-'}{flag}"
        )
    return 0


def _print_progress(state: ScanProgressState) -> None:
    if state.message:
        print(state.message)


async def _cmd_scan(args: argparse.Namespace, settings: DeskSettings) -> int:
    client = WorkflowClient(settings)
    store = StateStore(settings)
    tracker = ScanProgressTracker(
        client,
        store,
        settings=settings,
        strategy=args.strategy,
        user_email=args.user_email,
        listener=_print_progress,
    )
    try:
        await tracker.start_scan()
        final = await tracker.wait()
    finally:
        tracker.stop()
        await client.close()
        await store.close()
    if final.status is ScanStatus.ERROR:
        print(final.error or final.message, file=sys.stderr)
        return 1
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)
    if args.command == "classify":
        return _cmd_classify(args)
    try:
        settings = DeskSettings.from_env()
    except RuntimeError as exc:
        logger.error("%s", exc)
        return 2
    if args.command == "brokers":
        return asyncio.run(_cmd_brokers(args, settings))
    if args.command == "signals":
        return asyncio.run(_cmd_signals(args, settings))
    return asyncio.run(_cmd_scan(args, settings))


if __name__ == "__main__":
    raise SystemExit(main())
