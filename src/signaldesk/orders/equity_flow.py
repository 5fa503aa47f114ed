"""Equity order workflow: configure, then submit behind the live-order gate."""

from __future__ import annotations

from typing import Any

from signaldesk.orders import pricing
from signaldesk.orders.models import InstrumentKind, OrderDraft, OrderStyle, Side
from signaldesk.orders.states import Configure, WorkflowState
from signaldesk.orders.workflow import NO_BROKER_NOTICE, OrderWorkflow
from signaldesk.signals import StockSignal


class EquityOrderWorkflow(OrderWorkflow):
    kind = "equity"

    signal: StockSignal | None = None
    draft: OrderDraft | None = None

    def open(self, signal: StockSignal) -> WorkflowState:
        """Start (or restart) the workflow for ``signal`` with every field reset."""
        self._begin()
        self.signal = signal
        side = Side.SELL if (signal.signal_type or "").upper() == "SELL" else Side.BUY
        self.draft = OrderDraft(
            symbol=signal.symbol,
            kind=InstrumentKind.EQUITY,
            side=side,
            style=OrderStyle.MARKET,
            limit_price=signal.entry_price or signal.current_price or None,
            signal_id=signal.id,
        )
        return self.state

    def set_side(self, side: Side) -> None:
        self.draft.side = side

    def set_style(self, style: OrderStyle) -> None:
        self.draft.style = style

    def set_limit_price(self, price: float | None) -> None:
        self.draft.limit_price = price

    def set_quantity(self, quantity: int) -> int:
        self.draft.quantity = pricing.clamp_quantity(quantity)
        return self.draft.quantity

    def increment(self) -> int:
        self.draft.quantity = pricing.step_quantity(self.draft.quantity, 1)
        return self.draft.quantity

    def decrement(self) -> int:
        self.draft.quantity = pricing.step_quantity(self.draft.quantity, -1)
        return self.draft.quantity

    def set_confirm_text(self, text: str) -> None:
        self.draft.confirm_text = text

    @property
    def effective_price(self) -> float:
        if self.draft.style is OrderStyle.LIMIT and self.draft.limit_price:
            return self.draft.limit_price
        return self.signal.current_price if self.signal else 0.0

    @property
    def estimated_cost(self) -> float:
        return pricing.equity_order_cost(self.draft.quantity, self.effective_price)

    @property
    def can_submit(self) -> bool:
        return (
            isinstance(self.state, Configure)
            and self.broker is not None
            and self.draft.validation_error(live=self.is_live) is None
        )

    def _order_payload(self) -> dict[str, Any]:
        signal = self.signal
        payload = {
            "symbol": signal.symbol,
            "action": self.draft.side.value,
            "order_type": self.draft.style.value,
            "quantity": self.draft.quantity,
            "limit_price": self.effective_price if self.draft.style is OrderStyle.LIMIT else None,
            "current_price": signal.current_price,
            "estimated_cost": self.estimated_cost,
            "signal_id": signal.id,
            "signal_type": signal.signal_type,
            "confidence": signal.confidence,
            "entry_price": signal.entry_price,
            "target_price": signal.target_price,
            "stop_loss": signal.stop_loss,
            "user_id": self.user.user_id,
        }
        payload.update(self.broker_payload())
        return payload

    async def submit(self) -> WorkflowState:
        if not isinstance(self.state, Configure):
            return self.state
        if self.broker is None:
            return self._reject(NO_BROKER_NOTICE)
        problem = self.draft.validation_error(live=self.is_live)
        if problem:
            return self._reject(problem)
        return await self._submit(self._order_payload(), self._client.place_equity_order)


__all__ = ["EquityOrderWorkflow"]
