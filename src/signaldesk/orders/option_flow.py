"""Option order workflow: configure, find contracts, select, confirm, submit."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Optional

from pydantic import ValidationError

from signaldesk.brokers import BrokerResolver
from signaldesk.client import WorkflowAPIError, WorkflowClient
from signaldesk.config import DeskSettings
from signaldesk.journal import OrderJournal
from signaldesk.orders import pricing
from signaldesk.orders.errors import classify_blocking_error, extract_error_message
from signaldesk.orders.models import (
    ExpiryBucket,
    InstrumentKind,
    OptionKind,
    OrderDraft,
    OrderStyle,
    RiskMode,
    RiskTarget,
    Side,
    UserContext,
)
from signaldesk.orders.schemas import ContractCandidate, FindContractsResponse
from signaldesk.orders.states import (
    BudgetShortfall,
    Configure,
    Confirm,
    Failed,
    Finding,
    Selection,
    Submitting,
    WorkflowState,
)
from signaldesk.orders.workflow import NETWORK_FAILURE, NO_BROKER_NOTICE, CompletionCallback, OrderWorkflow
from signaldesk.signals import OptionSignal

logger = logging.getLogger(__name__)

NO_CONTRACTS = "No contracts found matching criteria. Try a wider expiry range or higher budget."
NO_AFFORDABLE = "No options available within your budget."
SEARCH_FAILURE = "Contract search failed. Please try again."
WARNINGS_NOTICE = "Review and acknowledge the trade warnings before submitting."
BRACKET_PROVIDERS = frozenset({"schwab"})


class _SearchFailed(Exception):
    def __init__(self, message: str, response: Any = None):
        super().__init__(message)
        self.message = message
        self.response = response


class OptionOrderWorkflow(OrderWorkflow):
    kind = "option"

    def __init__(
        self,
        client: WorkflowClient,
        resolver: BrokerResolver,
        *,
        settings: DeskSettings | None = None,
        user: UserContext | None = None,
        on_complete: Optional[CompletionCallback] = None,
        journal: OrderJournal | None = None,
    ) -> None:
        super().__init__(client, resolver, user=user, on_complete=on_complete, journal=journal)
        self.fee = settings.option_fee if settings else 0.65
        self.default_budget = settings.default_budget if settings else 300.0
        self.signal: OptionSignal | None = None
        self.draft: OrderDraft | None = None
        self.option_kind = OptionKind.CALL
        self.bucket = ExpiryBucket.SHORT
        self.budget = self.default_budget
        self.bracket = False
        self.warnings: list[pricing.TradeWarning] = []
        self.warnings_acknowledged = False
        self.proposed_quantity = 0
        self._candidates: tuple[ContractCandidate, ...] = ()
        self._submitted_candidate: ContractCandidate | None = None

    def open(self, signal: OptionSignal) -> WorkflowState:
        """Start (or restart) the workflow for ``signal`` with every field reset."""
        self._begin()
        self.signal = signal
        self.option_kind = OptionKind.parse(signal.option_type)
        self.bucket = ExpiryBucket.SHORT
        self.budget = self.default_budget
        self.draft = OrderDraft(
            symbol=signal.symbol,
            kind=InstrumentKind.OPTION,
            side=Side.BUY,
            style=OrderStyle.MARKET,
            stop_loss=RiskTarget(RiskMode.PERCENT, pricing.DEFAULT_STOP_LOSS_PCT),
            take_profit=RiskTarget(RiskMode.PERCENT, pricing.DEFAULT_TAKE_PROFIT_PCT),
            signal_id=signal.id,
        )
        provider = self.broker.provider if self.broker else ""
        self.bracket = provider in BRACKET_PROVIDERS
        self.warnings = pricing.trade_warnings(signal.trading_recommendation, signal.gates_passed, signal.tier)
        self.warnings_acknowledged = False
        self.proposed_quantity = 0
        self._candidates = ()
        self._submitted_candidate = None
        return self.state

    # configure

    def set_budget(self, budget: float) -> None:
        self.budget = float(budget)

    def set_stop_loss(self, mode: RiskMode, value: float | None = None) -> None:
        self.draft.stop_loss = RiskTarget(mode, value)

    def set_take_profit(self, mode: RiskMode, value: float | None = None) -> None:
        self.draft.take_profit = RiskTarget(mode, value)

    def acknowledge_warnings(self) -> None:
        self.warnings_acknowledged = True

    def set_confirm_text(self, text: str) -> None:
        self.draft.confirm_text = text

    def _find_payload(self, dte_min: int, dte_max: int) -> dict[str, Any]:
        payload = {
            "symbol": self.signal.symbol,
            "current_price": self.signal.current_price,
            "option_type": self.option_kind.value,
            "dte_min": dte_min,
            "dte_max": dte_max,
            "budget": self.budget,
            "stop_loss": self.draft.stop_loss.as_request_value(),
            "take_profit": self.draft.take_profit.as_request_value(),
        }
        payload.update(self.broker_payload())
        return payload

    async def _fetch(self, dte_min: int, dte_max: int) -> tuple[dict, FindContractsResponse]:
        try:
            raw = await self._client.find_contracts(self._find_payload(dte_min, dte_max))
        except WorkflowAPIError as exc:
            if exc.is_transport:
                logger.warning("Contract search failed: %s", exc)
                raise _SearchFailed(NETWORK_FAILURE, exc.payload) from exc
            logger.warning("Contract search rejected with HTTP %s", exc.status_code)
            raw = exc.payload
            if not isinstance(raw, dict):
                raise _SearchFailed(extract_error_message(raw) or SEARCH_FAILURE, raw) from exc
        if not isinstance(raw, dict):
            raise _SearchFailed(str(raw) if raw else NO_CONTRACTS, raw)
        try:
            return raw, FindContractsResponse.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Malformed contract search response: %s", exc)
            raise _SearchFailed("Unexpected response from contract search.", raw) from exc

    async def find_contracts(self) -> WorkflowState:
        if not isinstance(self.state, Configure):
            return self.state
        if self.broker is None:
            return self._reject(NO_BROKER_NOTICE)
        if self.budget <= 0:
            return self._reject("Budget must be greater than zero.")
        epoch = self._epoch
        self.notice = None
        dte_min, dte_max = self.bucket.window
        self.state = Finding(dte_min, dte_max)
        try:
            raw, result = await self._fetch(dte_min, dte_max)
            if epoch != self._epoch:
                return self.state
            if result.success is False:
                message = extract_error_message(raw)
                if classify_blocking_error(message) is not None or not (result.contracts or result.no_affordable):
                    self.state = self.failure_for(message, result)
                    return self.state
            if not result.contracts and not result.no_affordable:
                wide_min, wide_max = pricing.WIDE_DTE_WINDOW
                logger.info("No %s contracts in %s-%s DTE, retrying %s-%s", self.signal.symbol, dte_min, dte_max, wide_min, wide_max)
                self.state = Finding(wide_min, wide_max)
                raw, result = await self._fetch(wide_min, wide_max)
                if epoch != self._epoch:
                    return self.state
        except _SearchFailed as exc:
            if epoch == self._epoch:
                self.state = self.failure_for(exc.message, exc.response)
            return self.state

        if result.no_affordable:
            self.state = Failed(
                message=result.message or NO_AFFORDABLE,
                retryable=True,
                shortfall=self._shortfall(result),
                response=result,
            )
        elif result.contracts:
            self.state = Selection(candidates=tuple(result.contracts), selected=0)
        else:
            self.state = Failed(message=NO_CONTRACTS, retryable=True, response=result)
        return self.state

    @staticmethod
    def _shortfall(result: FindContractsResponse) -> BudgetShortfall:
        cheapest = result.cheapest_contract
        min_budget = result.min_budget_needed or (cheapest.premium * pricing.CONTRACT_MULTIPLIER if cheapest else 0.0)
        return BudgetShortfall(
            min_budget=min_budget,
            suggested_budget=pricing.suggested_retry_budget(min_budget),
            cheapest=cheapest,
            message=result.message or NO_AFFORDABLE,
        )

    def retry(self) -> WorkflowState:
        if isinstance(self.state, Failed) and self.state.shortfall is not None and self.state.shortfall.min_budget:
            self.budget = self.state.shortfall.suggested_budget
        return super().retry()

    # selection

    def select(self, index: int) -> WorkflowState:
        if isinstance(self.state, Selection) and 0 <= index < len(self.state.candidates):
            self.state = replace(self.state, selected=index)
        return self.state

    def proceed(self) -> WorkflowState:
        """Advance from selection to confirm with the selected candidate."""
        if not isinstance(self.state, Selection):
            return self.state
        candidate = self.state.candidate
        if candidate is None:
            return self._reject("Select a contract to continue.")
        self._candidates = self.state.candidates
        self.proposed_quantity = pricing.proposed_quantity(self.budget, self.cost_per_contract(candidate))
        self.draft.quantity = pricing.clamp_quantity(max(1, self.proposed_quantity), self._max_contracts(candidate))
        self.draft.confirm_text = ""
        self.state = Confirm(candidate=candidate)
        return self.state

    def back(self) -> WorkflowState:
        if isinstance(self.state, Confirm):
            candidates = self._candidates
            index = candidates.index(self.state.candidate) if self.state.candidate in candidates else 0
            self.state = Selection(candidates=candidates, selected=index)
        elif isinstance(self.state, Selection):
            self.state = Configure()
        return self.state

    # confirm

    @property
    def candidate(self) -> ContractCandidate | None:
        if isinstance(self.state, (Confirm, Selection)):
            return self.state.candidate
        if isinstance(self.state, Submitting):
            return self._submitted_candidate
        return None

    def cost_per_contract(self, candidate: ContractCandidate) -> float:
        return candidate.unit_cost + self.fee

    @staticmethod
    def _max_contracts(candidate: ContractCandidate | None) -> int:
        if candidate is not None and candidate.max_contracts:
            return candidate.max_contracts
        return pricing.DEFAULT_MAX_CONTRACTS

    def increment(self) -> int:
        self.draft.quantity = pricing.step_quantity(self.draft.quantity, 1, self._max_contracts(self.candidate))
        return self.draft.quantity

    def decrement(self) -> int:
        self.draft.quantity = pricing.step_quantity(self.draft.quantity, -1, self._max_contracts(self.candidate))
        return self.draft.quantity

    def set_quantity(self, quantity: int) -> int:
        self.draft.quantity = pricing.clamp_quantity(quantity, self._max_contracts(self.candidate))
        return self.draft.quantity

    def _risk_price(self, target: RiskTarget, *, stop: bool) -> float | None:
        candidate = self.candidate
        if candidate is None or target.mode is RiskMode.OFF or target.value is None:
            return None
        if target.mode is RiskMode.DOLLAR:
            return round(target.value, 2)
        if stop:
            return pricing.stop_loss_price(candidate.premium, target.value)
        return pricing.take_profit_price(candidate.premium, target.value)

    @property
    def stop_loss_price(self) -> float | None:
        return self._risk_price(self.draft.stop_loss, stop=True)

    @property
    def take_profit_price(self) -> float | None:
        return self._risk_price(self.draft.take_profit, stop=False)

    @property
    def risk(self) -> pricing.RiskProfile | None:
        candidate = self.candidate
        if candidate is None:
            return None
        return pricing.risk_profile(candidate.premium, self.draft.quantity, self.stop_loss_price, self.take_profit_price)

    @property
    def estimated_cost(self) -> float:
        candidate = self.candidate
        if candidate is None:
            return 0.0
        return round(self.cost_per_contract(candidate) * self.draft.quantity, 2)

    @property
    def over_budget(self) -> bool:
        return self.candidate is not None and self.estimated_cost > self.budget

    def _order_payload(self, candidate: ContractCandidate) -> dict[str, Any]:
        premium = candidate.premium
        payload = {
            "symbol": self.signal.symbol,
            "contract_symbol": candidate.contract_symbol,
            "option_type": self.option_kind.value,
            "strike": candidate.strike,
            "expiry": candidate.expiry,
            "premium": premium,
            "quantity": self.draft.quantity,
            "total_cost": round(self.draft.quantity * premium * pricing.CONTRACT_MULTIPLIER, 2),
            "budget": self.budget,
            "order_type": self.draft.style.value,
            "current_price": self.signal.current_price,
            "bracketOrder": self.bracket,
            "stop_loss": self.stop_loss_price if self.bracket else None,
            "take_profit": self.take_profit_price if self.bracket else None,
            "order_mode": "bracket" if self.bracket else "regular",
            "signal_id": self.signal.id,
            "tier": self.signal.tier,
            "gates_passed": self.signal.gates_passed,
            "user_id": self.user.user_id,
        }
        payload.update(self.broker_payload())
        return payload

    async def submit(self) -> WorkflowState:
        if not isinstance(self.state, Confirm):
            return self.state
        candidate = self.state.candidate
        if candidate is None:
            return self._reject("Select a contract to continue.")
        if self.broker is None:
            return self._reject(NO_BROKER_NOTICE)
        if self.warnings and not self.warnings_acknowledged:
            return self._reject(WARNINGS_NOTICE)
        problem = self.draft.validation_error(live=self.is_live)
        if problem:
            return self._reject(problem)
        self._submitted_candidate = candidate
        return await self._submit(self._order_payload(candidate), self._client.place_option_order)


__all__ = ["OptionOrderWorkflow"]
