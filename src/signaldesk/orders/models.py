"""Order draft and the enums that describe it."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from signaldesk.orders import pricing

LIVE_CONFIRM_LITERAL = "CONFIRM"


class Side(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class InstrumentKind(str, Enum):
    EQUITY = "equity"
    OPTION = "option"


class OrderStyle(str, Enum):
    MARKET = "market"
    LIMIT = "limit"


class OptionKind(str, Enum):
    CALL = "CALL"
    PUT = "PUT"

    @classmethod
    def parse(cls, raw: str | None) -> "OptionKind":
        return cls.PUT if str(raw or "").upper() == "PUT" else cls.CALL


class ExpiryBucket(str, Enum):
    SHORT = "short"
    SWING = "swing"
    MONTHLY = "monthly"

    @property
    def window(self) -> tuple[int, int]:
        return pricing.dte_window(self.value)


class RiskMode(str, Enum):
    PERCENT = "percent"
    DOLLAR = "dollar"
    OFF = "off"


@dataclass(slots=True)
class RiskTarget:
    """Stop-loss or take-profit setting; ``value`` is a percent or a price depending on ``mode``."""

    mode: RiskMode = RiskMode.PERCENT
    value: float | None = None

    def as_request_value(self) -> float | None:
        if self.mode is RiskMode.OFF:
            return None
        return self.value


@dataclass(frozen=True, slots=True)
class UserContext:
    user_id: str | None = None
    email: str | None = None
    access_level: str | None = None

    @property
    def paper_only(self) -> bool:
        return (self.access_level or "").lower() == "paper"


def confirmation_matches(text: str | None) -> bool:
    return (text or "").upper() == LIVE_CONFIRM_LITERAL


@dataclass(slots=True)
class OrderDraft:
    symbol: str
    kind: InstrumentKind
    side: Side = Side.BUY
    quantity: int = 1
    style: OrderStyle = OrderStyle.MARKET
    limit_price: float | None = None
    stop_loss: RiskTarget | None = None
    take_profit: RiskTarget | None = None
    confirm_text: str = ""
    signal_id: str | None = None

    def __post_init__(self) -> None:
        self.quantity = pricing.clamp_quantity(self.quantity)

    def validation_error(self, *, live: bool) -> str | None:
        """First reason this draft cannot be submitted, or None."""
        if self.quantity < 1:
            return "Quantity must be at least 1."
        if self.style is OrderStyle.LIMIT and (self.limit_price is None or self.limit_price <= 0):
            return "Enter a limit price for a limit order."
        if live and not confirmation_matches(self.confirm_text):
            return f"Please type {LIVE_CONFIRM_LITERAL} to place a live order."
        return None


__all__ = [
    "LIVE_CONFIRM_LITERAL",
    "ExpiryBucket",
    "InstrumentKind",
    "OptionKind",
    "OrderDraft",
    "OrderStyle",
    "RiskMode",
    "RiskTarget",
    "Side",
    "UserContext",
    "confirmation_matches",
]
