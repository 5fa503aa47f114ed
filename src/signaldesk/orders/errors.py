"""Blocking-error classification for order workflow failures.

The workflow service reports broker problems as free text only, so categories
are recognised by keyword. Rules are evaluated in order and the first match
wins; the order resolves overlaps such as "token" appearing in both reconnect
and session-expiry messages.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any

from signaldesk import market_hours


class BlockingError(str, Enum):
    MARKET_CLOSED = "market_closed"
    RECONNECT_REQUIRED = "reconnect_required"
    SESSION_EXPIRED = "session_expired"
    BROKER_NOT_CONFIGURED = "broker_not_configured"


_RULES: tuple[tuple[BlockingError, tuple[str, ...]], ...] = (
    (
        BlockingError.MARKET_CLOSED,
        ("9:30", "4:00 pm", "market hours", "market closed", "outside of"),
    ),
    (
        BlockingError.RECONNECT_REQUIRED,
        ("refresh token", "7-day", "invalid_grant", "reconnect"),
    ),
    (
        BlockingError.SESSION_EXPIRED,
        ("session expired", "authorization expired", "unauthorized", "401", "token expired", "token"),
    ),
    (
        BlockingError.BROKER_NOT_CONFIGURED,
        ("credentials", "broker not found", "inactive", "failed to fetch", "connection refused", "could not connect"),
    ),
)


def classify_blocking_error(message: str | None) -> BlockingError | None:
    """Map one error message to a blocking category, or None for a generic failure."""
    if not message:
        return None
    text = message.lower()
    for category, keywords in _RULES:
        if any(keyword in text for keyword in keywords):
            return category
    return None


@dataclass(frozen=True, slots=True)
class Remedy:
    title: str
    message: str
    details: tuple[tuple[str, str], ...] = ()
    action: str | None = None
    action_label: str | None = None


def remedy_for(category: BlockingError, *, provider: str | None = None, now: datetime | None = None) -> Remedy:
    broker_label = "Schwab" if provider == "schwab" else "Your broker"
    if category is BlockingError.MARKET_CLOSED:
        current = market_hours.to_et(now)
        return Remedy(
            title="MARKET CLOSED",
            message="Trading is available during market hours only.",
            details=(
                ("Market Hours", market_hours.MARKET_HOURS_LABEL),
                ("Current Time", current.strftime("%I:%M %p ET")),
                ("Next Open", market_hours.next_open_label(current)),
            ),
        )
    if category is BlockingError.RECONNECT_REQUIRED:
        return Remedy(
            title="RECONNECT REQUIRED",
            message="Your broker authorization has expired (7-day limit). You need to log in again.",
            details=(("Why", f"{broker_label} requires re-authentication every 7 days."),),
            action="settings",
            action_label="Reconnect Broker",
        )
    if category is BlockingError.SESSION_EXPIRED:
        return Remedy(
            title="SESSION EXPIRED",
            message="Your broker session has expired. Please reconnect to continue trading.",
            details=(("Why", f"{broker_label} access tokens auto-refresh; the refresh failed."),),
            action="settings",
            action_label="Reconnect Broker",
        )
    return Remedy(
        title="BROKER NOT CONFIGURED",
        message="Could not connect to your broker. Please check your broker settings.",
        details=(("Why", "Broker credentials may be missing, expired, or the account may be inactive."),),
        action="settings",
        action_label="Go to Settings",
    )


def extract_error_message(payload: Any) -> str:
    """Best available failure text from a heterogeneous response payload."""
    if payload is None:
        return ""
    if not isinstance(payload, dict):
        return str(payload)
    error = payload.get("error")
    if isinstance(error, str) and error:
        return error
    if isinstance(error, dict):
        for key in ("message", "code"):
            if error.get(key):
                return str(error[key])
    if payload.get("message"):
        return str(payload["message"])
    if error:
        return json.dumps(error)
    return json.dumps(payload)


_DUPLICATE_RE = re.compile(r"Already holding (\w+) on (\w+): (.+)")


@dataclass(frozen=True, slots=True)
class DuplicatePosition:
    option_kind: str
    symbol: str
    contract_symbol: str
    strike: float
    expiry: str
    dte: int


def parse_duplicate_position(message: str, *, today: date | None = None) -> DuplicatePosition | None:
    """Parse "Already holding CALL on AAPL: AAPL  250117C00150000" style rejections."""
    match = _DUPLICATE_RE.search(message or "")
    if not match:
        return None
    contract = match.group(3).strip()
    compact = re.sub(r"\s+", "", contract)
    if len(compact) < 15 or not compact[-8:].isdigit():
        return None
    yymmdd = compact[-15:-9]
    try:
        expiry = date(2000 + int(yymmdd[0:2]), int(yymmdd[2:4]), int(yymmdd[4:6]))
    except ValueError:
        return None
    today = today or date.today()
    return DuplicatePosition(
        option_kind=match.group(1),
        symbol=match.group(2),
        contract_symbol=contract,
        strike=int(compact[-8:]) / 1000,
        expiry=expiry.isoformat(),
        dte=max(0, math.ceil((expiry - today).days)),
    )


__all__ = [
    "BlockingError",
    "DuplicatePosition",
    "Remedy",
    "classify_blocking_error",
    "extract_error_message",
    "parse_duplicate_position",
    "remedy_for",
]
