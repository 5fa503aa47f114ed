"""Sell-to-close workflow for an existing option position."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from signaldesk.brokers import BrokerConnection
from signaldesk.orders import pricing
from signaldesk.orders.models import InstrumentKind, OrderDraft, OrderStyle, Side
from signaldesk.orders.states import Configure, Confirm, WorkflowState
from signaldesk.orders.workflow import NO_BROKER_NOTICE, OrderWorkflow

CLOSE_INSTRUCTION = "SELL_TO_CLOSE"


@dataclass(frozen=True, slots=True)
class Position:
    symbol: str
    underlying: str
    quantity: int
    put_call: str = "CALL"
    strike: float | None = None
    expiry: str | None = None
    asset_type: str = "OPTION"
    is_option: bool = True
    avg_price: float | None = None
    market_value: float | None = None
    day_pl: float = 0.0

    @classmethod
    def from_record(cls, row: Mapping[str, Any]) -> "Position":
        symbol = str(row.get("symbol") or "")
        return cls(
            symbol=symbol,
            underlying=str(row.get("underlying") or symbol),
            quantity=int(row.get("quantity") or 0),
            put_call=str(row.get("putCall") or row.get("put_call") or "CALL").upper(),
            strike=row.get("strikePrice", row.get("strike")),
            expiry=row.get("expirationDate", row.get("expiry")),
            asset_type=str(row.get("assetType") or row.get("asset_type") or "OPTION"),
            is_option=bool(row.get("isOption", row.get("is_option", True))),
            avg_price=row.get("avgPrice", row.get("avg_price")),
            market_value=row.get("marketValue", row.get("market_value")),
            day_pl=float(row.get("dayPL", row.get("day_pl")) or 0.0),
        )


class ClosePositionWorkflow(OrderWorkflow):
    kind = "close"

    position: Position | None = None
    draft: OrderDraft | None = None
    _broker_override: BrokerConnection | None = None

    @property
    def broker(self) -> BrokerConnection | None:
        if self._broker_override is not None:
            return self._broker_override
        return super().broker

    def open(self, position: Position, *, broker: BrokerConnection | None = None) -> WorkflowState:
        """Start closing ``position``; ``broker`` pins the connection that holds it."""
        self._begin()
        self.position = position
        self._broker_override = broker
        self.draft = OrderDraft(
            symbol=position.symbol,
            kind=InstrumentKind.OPTION if position.is_option else InstrumentKind.EQUITY,
            side=Side.SELL,
            quantity=max(1, position.quantity),
            style=OrderStyle.MARKET,
        )
        return self.state

    @property
    def _max_quantity(self) -> int:
        return max(1, self.position.quantity)

    def set_quantity(self, quantity: int) -> int:
        self.draft.quantity = pricing.clamp_quantity(quantity, self._max_quantity)
        return self.draft.quantity

    def increment(self) -> int:
        self.draft.quantity = pricing.step_quantity(self.draft.quantity, 1, self._max_quantity)
        return self.draft.quantity

    def decrement(self) -> int:
        self.draft.quantity = pricing.step_quantity(self.draft.quantity, -1, self._max_quantity)
        return self.draft.quantity

    def sell_all(self) -> int:
        return self.set_quantity(self._max_quantity)

    def set_confirm_text(self, text: str) -> None:
        self.draft.confirm_text = text

    @property
    def estimated_pl(self) -> float:
        if self.position.quantity <= 0:
            return 0.0
        return round(self.position.day_pl / self.position.quantity * self.draft.quantity, 2)

    def proceed(self) -> WorkflowState:
        if isinstance(self.state, Configure):
            self.state = Confirm()
        return self.state

    def back(self) -> WorkflowState:
        if isinstance(self.state, Confirm):
            self.state = Configure()
        return self.state

    def _order_payload(self) -> dict[str, Any]:
        position = self.position
        payload = {
            "symbol": position.underlying or position.symbol,
            "contract_symbol": position.symbol,
            "instruction": CLOSE_INSTRUCTION,
            "option_type": position.put_call,
            "strike": position.strike,
            "expiry": position.expiry,
            "quantity": self.draft.quantity,
            "order_type": self.draft.style.value,
            "asset_type": position.asset_type,
            "is_option": position.is_option,
            "avg_price": position.avg_price,
            "market_value": position.market_value,
            "user_id": self.user.user_id,
        }
        payload.update(self.broker_payload())
        return payload

    async def submit(self) -> WorkflowState:
        if not isinstance(self.state, Confirm):
            return self.state
        if self.broker is None:
            return self._reject(NO_BROKER_NOTICE)
        problem = self.draft.validation_error(live=self.is_live)
        if problem:
            return self._reject(problem)
        return await self._submit(self._order_payload(), self._client.close_position)


__all__ = ["CLOSE_INSTRUCTION", "ClosePositionWorkflow", "Position"]
