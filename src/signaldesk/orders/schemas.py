"""Pydantic schemas for workflow-service payloads."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ContractCandidate(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)

    symbol: str = ""
    contract_symbol: str = ""
    strike: float
    expiry: str
    option_type: str = "CALL"
    premium: float = Field(..., ge=0.0)
    quantity: Optional[int] = None
    total_cost: Optional[float] = None
    cost_per_contract: Optional[float] = None
    dte: Optional[int] = None
    max_contracts: Optional[int] = Field(default=None, ge=1)
    delta: Optional[float] = None
    gamma: Optional[float] = None
    theta: Optional[float] = None
    vega: Optional[float] = None
    iv: Optional[float] = None
    bid: Optional[float] = None
    ask: Optional[float] = None
    open_interest: Optional[int] = None
    volume: Optional[int] = None

    @property
    def unit_cost(self) -> float:
        """Cost of one contract before fees."""
        if self.cost_per_contract:
            return self.cost_per_contract
        return self.premium * 100


class FindContractsResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    success: Optional[bool] = None
    contracts: List[ContractCandidate] = Field(default_factory=list)
    no_affordable: bool = False
    min_budget_needed: Optional[float] = None
    cheapest_contract: Optional[ContractCandidate] = None
    message: Optional[str] = None
    error: Any = None


__all__ = ["ContractCandidate", "FindContractsResponse"]
