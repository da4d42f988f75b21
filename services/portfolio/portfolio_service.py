# services/portfolio/portfolio_service.py
from __future__ import annotations

from typing import List, Optional

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from config.settings import Settings
from models.account import Account
from models.holding import Holding, HoldingOut, to_dto
from schemas.portfolio import AccountBalanceInput, ClassifiedPortfolio, PortfolioPosition
from services.errors import AccountNotFoundError
from services.portfolio.aggregator import build_classified_portfolio
from schemas.taxonomy import Taxonomy


def holding_to_position(h: Holding) -> PortfolioPosition:
    # Ledger rows may lack valuations (e.g. an upload without prices); they count as 0 here.
    return PortfolioPosition(
        symbol=h.symbol or h.name,
        description=h.description,
        asset_type=h.asset_type or "EQUITY",
        quantity=float(h.quantity or 0.0),
        short_quantity=float(h.short_quantity or 0.0),
        average_price=h.purchase_price or 0.0,
        market_value=h.market_value or 0.0,
        current_day_profit_loss=h.day_profit_loss or 0.0,
        current_day_profit_loss_percentage=h.day_profit_loss_pct or 0.0,
        account_id=h.account_id,
    )


def account_to_balance(a: Account) -> AccountBalanceInput:
    return AccountBalanceInput(
        account_id=a.id,
        cash_balance=a.cash_balance,
        liquidation_value=a.total_market_value,
        account_category=a.account_category or "brokerage",
    )


def get_active_positions(db: Session, user_id: str) -> List[PortfolioPosition]:
    rows = db.scalars(
        select(Holding)
        .where(Holding.user_id == user_id, or_(Holding.quantity > 0, Holding.short_quantity > 0))
        .order_by(Holding.account_id, Holding.symbol)
    )
    return [holding_to_position(h) for h in rows]


def get_account_balances(db: Session, user_id: str) -> List[AccountBalanceInput]:
    rows = db.scalars(select(Account).where(Account.user_id == user_id).order_by(Account.id))
    return [account_to_balance(a) for a in rows]


def get_classified_portfolio(
    db: Session,
    user_id: str,
    taxonomy: Optional[Taxonomy] = None,
    settings: Optional[Settings] = None,
) -> ClassifiedPortfolio:
    """Read-time projection over every account of the user; nothing is persisted."""
    return build_classified_portfolio(
        get_active_positions(db, user_id),
        get_account_balances(db, user_id),
        taxonomy=taxonomy,
        settings=settings,
    )


def get_account_holdings(db: Session, account_id: str, include_closed: bool = False) -> List[HoldingOut]:
    """Ledger rows of one account; closed positions (quantity 0) only on request."""
    if db.get(Account, account_id) is None:
        raise AccountNotFoundError(account_id)
    stmt = select(Holding).where(Holding.account_id == account_id).order_by(Holding.symbol)
    if not include_closed:
        stmt = stmt.where(or_(Holding.quantity > 0, Holding.short_quantity > 0))
    return [to_dto(h) for h in db.scalars(stmt)]
