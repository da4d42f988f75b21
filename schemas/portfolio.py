from __future__ import annotations

from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.taxonomy import AssetClassDef

AccountCategory = Literal["brokerage", "banking", "credit", "loan", "real_estate", "offline"]


# ─── Inputs (source-agnostic) ─────────────────────────────────

class PortfolioPosition(BaseModel):
    """Normalized position: same shape for brokerage API, aggregator sync or uploads."""
    symbol: str
    description: Optional[str] = None
    asset_type: str
    quantity: float
    short_quantity: float = 0.0
    average_price: float = 0.0
    market_value: float
    current_day_profit_loss: float = 0.0
    current_day_profit_loss_percentage: float = 0.0
    account_id: Optional[str] = None


class AccountBalanceInput(BaseModel):
    account_id: Optional[str] = None
    cash_balance: Optional[float] = None
    liquidation_value: Optional[float] = None   # negative for credit/loan accounts
    account_category: AccountCategory = "brokerage"


# ─── Classification ────────────────────────────────────────

class Classification(BaseModel):
    model_config = ConfigDict(frozen=True)

    asset_class_id: str
    sub_class_id: Optional[str] = None
    sub_category: Optional[str] = None          # e.g. "Bitcoin ETF", "TSLA Option"
    underlying_class_id: Optional[str] = None   # options only: class of the underlying


class ClassifiedPosition(BaseModel):
    symbol: str
    description: str = ""
    asset_class_id: str
    sub_class_id: Optional[str] = None
    sub_category: Optional[str] = None
    underlying_class_id: Optional[str] = None
    quantity: float                 # net of short quantity
    average_price: float
    market_value: float
    current_day_profit_loss: float
    current_day_profit_loss_percentage: float
    allocation_pct: float = 0.0     # % of total portfolio market value
    instrument_type: str
    display_category: str = "other"
    display_category_label: str = "Other"
    account_id: Optional[str] = None


# ─── Outputs ─────────────────────────────────────────────

class AssetClassSummary(BaseModel):
    asset_class: AssetClassDef
    market_value: float
    day_change: float
    allocation_pct: float
    holding_count: int
    positions: List[ClassifiedPosition]


class SubAggregate(BaseModel):
    label: str
    market_value: float
    allocation_pct: float
    positions: List[ClassifiedPosition]


class ClassifiedPortfolio(BaseModel):
    total_market_value: float
    total_day_change: float
    total_day_change_pct: float
    holding_count: int
    cash_value: float
    cash_pct: float
    liability_value: float
    liability_pct: float
    asset_classes: List[AssetClassSummary]
    hhi: float                      # 0-10000, lower = more diversified
    diversification_score: int     # 1-10
    safe_withdrawal_annual: float
    crypto_breakdown: List[SubAggregate] = Field(default_factory=list)
    tech_breakdown: List[SubAggregate] = Field(default_factory=list)
    taxonomy_version: Optional[str] = None
