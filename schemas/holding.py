from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

ChangeType = Literal["new_position", "quantity_change", "value_update", "closed_position"]


class IncomingPosition(BaseModel):
    """One position from an ingestion batch (upload, brokerage API or aggregator sync)."""
    symbol: str
    description: Optional[str] = None
    cusip: Optional[str] = None
    asset_type: str = "EQUITY"
    asset_subtype: Optional[str] = None
    quantity: float
    short_quantity: Optional[float] = None
    average_cost_basis: Optional[float] = None       # per unit
    market_price_per_share: Optional[float] = None
    market_value: Optional[float] = None
    cost_basis_total: Optional[float] = None
    unrealized_profit_loss: Optional[float] = None
    unrealized_profit_loss_pct: Optional[float] = None
    day_change_amount: Optional[float] = None
    day_change_pct: Optional[float] = None
    snapshot_date: Optional[date] = None


class BalanceRecord(BaseModel):
    cash_balance: Optional[float] = None
    liquidation_value: Optional[float] = None
    buying_power: Optional[float] = None
    snapshot_date: Optional[date] = None


class PositionState(BaseModel):
    quantity: float
    market_value: Optional[float] = None


class ReconciliationChange(BaseModel):
    type: ChangeType
    symbol: str
    name: str
    account_id: str
    previous: Optional[PositionState] = None
    current: Optional[PositionState] = None


class ReconciliationResult(BaseModel):
    changes: List[ReconciliationChange] = Field(default_factory=list)
    upserted: int = 0
    closed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0

    def count(self, change_type: ChangeType) -> int:
        return sum(1 for c in self.changes if c.type == change_type)


class AccountSummary(BaseModel):
    account_id: str
    equity_value: float
    cash_balance: Optional[float] = None
    buying_power: Optional[float] = None
    holdings_count: int
    total_market_value: float
    reported_total: Optional[float] = None
    inflation_guard_applied: bool = False
    last_synced_at: datetime


class IngestResult(BaseModel):
    reconciliation: ReconciliationResult
    account: AccountSummary


class SnapshotRequest(BaseModel):
    user_id: str
    provenance: str
    positions: List[IncomingPosition] = Field(default_factory=list)
    balance: Optional[BalanceRecord] = None
    trust_external_total: Optional[bool] = None
