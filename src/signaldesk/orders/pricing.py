"""Order sizing and risk arithmetic shared by the order workflows."""

from __future__ import annotations

import math
from dataclasses import dataclass

CONTRACT_MULTIPLIER = 100
DEFAULT_MAX_CONTRACTS = 10
DEFAULT_STOP_LOSS_PCT = 20.0
DEFAULT_TAKE_PROFIT_PCT = 50.0
RETRY_BUDGET_STEP = 50

# Expiry bucket -> (dte_min, dte_max)
DTE_WINDOWS: dict[str, tuple[int, int]] = {
    "short": (5, 10),
    "swing": (10, 20),
    "monthly": (30, 60),
}
WIDE_DTE_WINDOW = (3, 45)


def dte_window(bucket: str) -> tuple[int, int]:
    try:
        return DTE_WINDOWS[bucket]
    except KeyError as exc:
        raise ValueError(f"Unknown expiry bucket: {bucket!r}") from exc


def clamp_quantity(quantity: int, maximum: int | None = None) -> int:
    value = max(1, int(quantity))
    if maximum is not None:
        value = min(value, max(1, int(maximum)))
    return value


def step_quantity(quantity: int, delta: int, maximum: int | None = None) -> int:
    """Apply an increment/decrement; stepping below one or above ``maximum`` is a no-op."""
    target = quantity + delta
    if target < 1:
        return clamp_quantity(quantity, maximum)
    if maximum is not None and target > maximum:
        return clamp_quantity(quantity, maximum)
    return target


def proposed_quantity(budget: float, cost_per_contract: float) -> int:
    if cost_per_contract <= 0:
        return 0
    return max(0, math.floor(budget / cost_per_contract))


def contract_cost(premium: float, fee: float = 0.0) -> float:
    return premium * CONTRACT_MULTIPLIER + fee


def equity_order_cost(quantity: int, price: float | None) -> float:
    return round(quantity * (price or 0.0), 2)


def stop_loss_price(premium: float, pct: float) -> float:
    return round(premium * (1 - pct / 100), 2)


def take_profit_price(premium: float, pct: float) -> float:
    return round(premium * (1 + pct / 100), 2)


@dataclass(frozen=True, slots=True)
class RiskProfile:
    max_loss: float | None
    max_gain: float | None
    risk_reward: float | None


def risk_profile(premium: float, quantity: int, stop: float | None, target: float | None) -> RiskProfile:
    max_loss = None if stop is None else round((premium - stop) * CONTRACT_MULTIPLIER * quantity, 2)
    max_gain = None if target is None else round((target - premium) * CONTRACT_MULTIPLIER * quantity, 2)
    ratio = None
    if stop is not None and target is not None and premium - stop > 0:
        ratio = round((target - premium) / (premium - stop), 1)
    return RiskProfile(max_loss=max_loss, max_gain=max_gain, risk_reward=ratio)


def suggested_retry_budget(min_budget: float) -> float:
    return float(math.ceil((min_budget + RETRY_BUDGET_STEP) / RETRY_BUDGET_STEP) * RETRY_BUDGET_STEP)


@dataclass(frozen=True, slots=True)
class TradeWarning:
    severity: str
    text: str


DEFAULT_GATES = "0/6"


def _parse_gates(raw: str | None) -> tuple[int, int] | None:
    passed, sep, total = (raw or DEFAULT_GATES).partition("/")
    if not sep:
        return None
    try:
        return int(passed), int(total)
    except ValueError:
        return None


def trade_warnings(recommendation: str | None, gates_passed: str | None, tier: str | None) -> list[TradeWarning]:
    """Quality warnings for an option signal that the user must acknowledge before buying.

    A missing gate count is read as ``0/6``.
    """
    warnings: list[TradeWarning] = []
    rec = (recommendation or "").upper()
    if "STRONG" not in rec:
        warnings.append(TradeWarning("high", f"Signal is {rec or 'UNKNOWN'}, not a strong signal"))
    gates = _parse_gates(gates_passed)
    if gates is not None:
        passed, total = gates
        missed = total - passed
        if missed > 0:
            severity = "high" if missed >= 2 else "medium"
            warnings.append(TradeWarning(severity, f"Only {passed} of {total} confirmation gates passed"))
    if tier == "B+":
        warnings.append(TradeWarning("medium", "Tier B+ setup carries more uncertainty than A tiers"))
    return warnings


__all__ = [
    "CONTRACT_MULTIPLIER",
    "DEFAULT_MAX_CONTRACTS",
    "DEFAULT_STOP_LOSS_PCT",
    "DEFAULT_TAKE_PROFIT_PCT",
    "DTE_WINDOWS",
    "WIDE_DTE_WINDOW",
    "RiskProfile",
    "TradeWarning",
    "clamp_quantity",
    "contract_cost",
    "dte_window",
    "equity_order_cost",
    "proposed_quantity",
    "risk_profile",
    "step_quantity",
    "stop_loss_price",
    "suggested_retry_budget",
    "take_profit_price",
    "trade_warnings",
]
