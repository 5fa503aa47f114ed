"""Workflow states as tagged variants.

Each variant carries only what is meaningful in that state. ``name`` is the
stable state label exposed to UI callers.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from signaldesk.orders.errors import BlockingError, DuplicatePosition, Remedy
from signaldesk.orders.schemas import ContractCandidate


@dataclass(frozen=True, slots=True)
class Configure:
    name = "configure"


@dataclass(frozen=True, slots=True)
class Finding:
    dte_min: int
    dte_max: int
    name = "finding"


@dataclass(frozen=True, slots=True)
class Selection:
    candidates: tuple[ContractCandidate, ...]
    selected: int = 0
    name = "selection"

    @property
    def candidate(self) -> ContractCandidate | None:
        if 0 <= self.selected < len(self.candidates):
            return self.candidates[self.selected]
        return None


@dataclass(frozen=True, slots=True)
class Confirm:
    candidate: ContractCandidate | None = None
    name = "confirm"


@dataclass(frozen=True, slots=True)
class Submitting:
    payload: dict
    name = "submitting"


@dataclass(frozen=True, slots=True)
class Succeeded:
    order_id: str
    placeholder_id: bool = False
    response: Any = None
    message: str = ""
    name = "success"


@dataclass(frozen=True, slots=True)
class BudgetShortfall:
    min_budget: float
    suggested_budget: float
    cheapest: ContractCandidate | None = None
    message: str = ""


@dataclass(frozen=True, slots=True)
class Failed:
    message: str
    blocking: BlockingError | None = None
    remedy: Remedy | None = None
    retryable: bool = True
    duplicate: DuplicatePosition | None = None
    shortfall: BudgetShortfall | None = None
    response: Any = None
    name = "error"


@dataclass(frozen=True, slots=True)
class Closed:
    name = "closed"


WorkflowState = Union[Configure, Finding, Selection, Confirm, Submitting, Succeeded, Failed, Closed]

TERMINAL_STATES = (Succeeded, Failed, Closed)


__all__ = [
    "BudgetShortfall",
    "Closed",
    "Configure",
    "Confirm",
    "Failed",
    "Finding",
    "Selection",
    "Submitting",
    "Succeeded",
    "TERMINAL_STATES",
    "WorkflowState",
]
