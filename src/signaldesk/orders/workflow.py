"""Shared order workflow machinery.

Concrete workflows drive their own screens; this base owns the parts every
order shares: broker resolution, the live-order gate, single-flight
submission, response interpretation and the completion callback.

Closing a workflow bumps its epoch. Responses that arrive for an older epoch
are logged and dropped, so an abandoned request never mutates a reused
instance.
"""

from __future__ import annotations

import inspect
import logging
import random
import string
from typing import Any, Awaitable, Callable, Optional, Union

from signaldesk.brokers import BrokerConnection, BrokerResolver
from signaldesk.client import WorkflowAPIError, WorkflowClient
from signaldesk.journal import OrderJournal
from signaldesk.orders.errors import (
    classify_blocking_error,
    extract_error_message,
    parse_duplicate_position,
    remedy_for,
)
from signaldesk.orders.models import UserContext
from signaldesk.orders.states import Closed, Configure, Failed, Submitting, Succeeded, TERMINAL_STATES, WorkflowState

logger = logging.getLogger(__name__)

ACCEPTED_STATUSES = frozenset({"submitted", "accepted"})
GENERIC_FAILURE = "Order failed. Please try again."
NETWORK_FAILURE = "Network error. Please try again."
NO_BROKER_NOTICE = "No active broker connection. Add or activate a broker in Settings."

CompletionCallback = Callable[[Succeeded], Union[Awaitable[None], None]]


def is_accepted(response: Any) -> bool:
    if not isinstance(response, dict):
        return False
    if response.get("success") is False:
        return False
    if response.get("success"):
        return True
    return str(response.get("status") or "").lower() in ACCEPTED_STATUSES


def placeholder_order_id() -> str:
    return "ORD-" + "".join(random.choices(string.ascii_uppercase + string.digits, k=9))


def extract_order_id(response: Any) -> tuple[str, bool]:
    """Return ``(order_id, is_placeholder)``."""
    if isinstance(response, dict):
        order = response.get("order")
        if isinstance(order, dict) and order.get("orderId"):
            return str(order["orderId"]), False
        if response.get("order_id"):
            return str(response["order_id"]), False
    return placeholder_order_id(), True


class OrderWorkflow:
    kind = "order"

    def __init__(
        self,
        client: WorkflowClient,
        resolver: BrokerResolver,
        *,
        user: UserContext | None = None,
        on_complete: Optional[CompletionCallback] = None,
        journal: OrderJournal | None = None,
    ) -> None:
        self._client = client
        self._resolver = resolver
        self.user = user or UserContext()
        self.on_complete = on_complete
        self.journal = journal
        self.state: WorkflowState = Closed()
        self.notice: str | None = None
        self._epoch = 0

    @property
    def broker(self) -> BrokerConnection | None:
        return self._resolver.active

    @property
    def is_live(self) -> bool:
        broker = self.broker
        if broker is None or self.user.paper_only:
            return False
        return broker.is_live

    @property
    def broker_mode(self) -> str:
        return "live" if self.is_live else "paper"

    @property
    def is_open(self) -> bool:
        return not isinstance(self.state, Closed)

    @property
    def in_flight(self) -> bool:
        return isinstance(self.state, Submitting)

    def _begin(self) -> None:
        self._epoch += 1
        self.notice = None
        self.state = Configure()

    def close(self) -> None:
        """Abandon the workflow; late responses are ignored."""
        if not isinstance(self.state, TERMINAL_STATES):
            logger.info("%s workflow closed while %s", self.kind, self.state.name)
        self._epoch += 1
        self.state = Closed()

    def _reject(self, notice: str) -> WorkflowState:
        self.notice = notice
        return self.state

    def broker_payload(self) -> dict[str, Any]:
        broker = self.broker
        if broker is None:
            return {"broker_id": None, "broker_name": None, "broker_mode": self.broker_mode}
        payload = broker.as_payload()
        payload["broker_mode"] = self.broker_mode
        return payload

    def retry(self) -> WorkflowState:
        """Return a retryable failure to ``configure`` with inputs preserved."""
        if isinstance(self.state, Failed) and self.state.retryable:
            self.notice = None
            self.state = Configure()
        return self.state

    def failure_for(self, message: str, response: Any = None) -> Failed:
        category = classify_blocking_error(message)
        if category is not None:
            provider = self.broker.provider if self.broker else None
            logger.warning("%s order blocked (%s): %s", self.kind, category.value, message)
            return Failed(
                message=message,
                blocking=category,
                remedy=remedy_for(category, provider=provider),
                retryable=False,
                response=response,
            )
        duplicate = parse_duplicate_position(message)
        if duplicate is not None:
            return Failed(message=message, retryable=False, duplicate=duplicate, response=response)
        return Failed(message=message or GENERIC_FAILURE, retryable=True, response=response)

    def interpret(self, response: Any) -> Succeeded | Failed:
        if is_accepted(response):
            order_id, placeholder = extract_order_id(response)
            return Succeeded(
                order_id=order_id,
                placeholder_id=placeholder,
                response=response,
                message=str(response.get("message") or ""),
            )
        return self.failure_for(extract_error_message(response) or GENERIC_FAILURE, response)

    async def _submit(self, payload: dict, send: Callable[[dict], Awaitable[Any]]) -> WorkflowState:
        epoch = self._epoch
        self.notice = None
        self.state = Submitting(payload=payload)
        logger.info("Submitting %s order %s x%s (%s)", self.kind, payload.get("symbol"), payload.get("quantity"), self.broker_mode)
        if self.journal is not None:
            self.journal.record("submit", kind=self.kind, payload=payload)
        try:
            response = await send(payload)
        except WorkflowAPIError as exc:
            if exc.is_transport:
                logger.warning("%s order request failed: %s", self.kind, exc)
                outcome: Succeeded | Failed = Failed(message=NETWORK_FAILURE, retryable=True, response=exc.payload)
            else:
                logger.warning("%s order rejected with HTTP %s", self.kind, exc.status_code)
                outcome = self.interpret(exc.payload)
        else:
            outcome = self.interpret(response)

        if epoch != self._epoch:
            logger.info("Ignoring %s order response for abandoned workflow", self.kind)
            return self.state
        self.state = outcome
        if self.journal is not None:
            self.journal.record(
                "result",
                kind=self.kind,
                symbol=payload.get("symbol"),
                state=outcome.name,
                order_id=getattr(outcome, "order_id", None),
                message=outcome.message,
            )
        if isinstance(outcome, Succeeded):
            logger.info("%s order accepted: %s", self.kind, outcome.order_id)
            await self._notify(outcome)
        return self.state

    async def _notify(self, outcome: Succeeded) -> None:
        if self.on_complete is None:
            return
        try:
            result = self.on_complete(outcome)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Order completion callback failed")


__all__ = [
    "ACCEPTED_STATUSES",
    "GENERIC_FAILURE",
    "NETWORK_FAILURE",
    "NO_BROKER_NOTICE",
    "CompletionCallback",
    "OrderWorkflow",
    "extract_order_id",
    "is_accepted",
    "placeholder_order_id",
]
