"""
Recompute and store account-level summary columns after a reconciliation.

Equity is the sum of active holdings; cash and buying power come from the
balance record. The account total prefers the externally reported
liquidation value, except when that value has nothing backing it (see
_inflation_guard_fires); then the computed equity + cash wins.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from math import fsum
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from config.settings import InflationGuardSettings, Settings, get_settings
from models.account import Account
from models.holding import Holding
from schemas.holding import AccountSummary, BalanceRecord
from services.errors import AccountNotFoundError

logger = logging.getLogger(__name__)


def _inflation_guard_fires(
    *,
    holdings_count: int,
    account_category: Optional[str],
    trust_external_total: bool,
    reported: float,
    computed: float,
    guard: InflationGuardSettings,
) -> bool:
    if trust_external_total or holdings_count > 0:
        return False
    if (account_category or "brokerage").lower() not in guard.position_backed_categories:
        return False
    if abs(reported) <= guard.min_reported:
        return False
    allowed = max(abs(computed) * guard.relative_band, guard.absolute_band)
    return abs(reported - computed) > allowed


def resolve_total_market_value(
    *,
    equity_value: float,
    cash_balance: Optional[float],
    holdings_count: int,
    account_category: Optional[str],
    balance: Optional[BalanceRecord],
    trust_external_total: bool = False,
    guard: Optional[InflationGuardSettings] = None,
) -> tuple[float, bool]:
    """Returns (total, guard_applied)."""
    computed = equity_value + (cash_balance if cash_balance is not None else 0.0)
    if balance is None or balance.liquidation_value is None:
        return computed, False

    reported = balance.liquidation_value
    if _inflation_guard_fires(
        holdings_count=holdings_count,
        account_category=account_category,
        trust_external_total=trust_external_total,
        reported=reported,
        computed=computed,
        guard=guard or get_settings().inflation_guard,
    ):
        return computed, True
    return reported, False


def recompute_account_summary(
    db: Session,
    account_id: str,
    balance: Optional[BalanceRecord] = None,
    trust_external_total: Optional[bool] = None,
    settings: Optional[Settings] = None,
) -> AccountSummary:
    """
    Persist equity value, cash, buying power, holdings count, total value and
    last-synced time on the account. Does not commit.

    trust_external_total=None falls back to the account's is_aggregate flag.
    """
    cfg = settings or get_settings()
    account = db.get(Account, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)

    values = list(db.scalars(
        select(Holding.market_value)
        .where(Holding.account_id == account_id, Holding.quantity > 0)
    ))
    equity_value = fsum(v for v in values if v is not None)
    holdings_count = len(values)

    cash_balance = balance.cash_balance if balance is not None else None
    buying_power = balance.buying_power if balance is not None else None
    trust = account.is_aggregate if trust_external_total is None else trust_external_total

    total, guarded = resolve_total_market_value(
        equity_value=equity_value,
        cash_balance=cash_balance,
        holdings_count=holdings_count,
        account_category=account.account_category,
        balance=balance,
        trust_external_total=bool(trust),
        guard=cfg.inflation_guard,
    )
    if guarded:
        logger.warning(
            "Reported total %.2f for account %s has no backing holdings; using computed %.2f",
            balance.liquidation_value, account_id, total,
            extra={"account_id": account_id},
        )

    now = datetime.now(timezone.utc)
    account.equity_value = equity_value
    account.cash_balance = cash_balance
    account.buying_power = buying_power
    account.holdings_count = holdings_count
    account.total_market_value = total
    account.last_synced_at = now
    db.flush()

    return AccountSummary(
        account_id=account_id,
        equity_value=equity_value,
        cash_balance=cash_balance,
        buying_power=buying_power,
        holdings_count=holdings_count,
        total_market_value=total,
        reported_total=balance.liquidation_value if balance is not None else None,
        inflation_guard_applied=guarded,
        last_synced_at=now,
    )
