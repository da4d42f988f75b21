# services/portfolio/aggregator.py
from __future__ import annotations

import logging
from collections import defaultdict
from math import floor, fsum
from typing import Dict, Iterable, List, Optional

from config.settings import Settings, get_settings
from schemas.portfolio import (
    AccountBalanceInput,
    AssetClassSummary,
    ClassifiedPortfolio,
    ClassifiedPosition,
    PortfolioPosition,
    SubAggregate,
)
from schemas.taxonomy import AssetClassDef, Taxonomy
from services.portfolio.classifier import classify, display_category, display_category_label
from services.portfolio.taxonomy import get_default_taxonomy

logger = logging.getLogger(__name__)

# classes broken down further for the dashboard cards
CRYPTO_CLASS = "crypto"
TECH_CLASS = "tech_equities"


def _pct(part: float, total: float) -> float:
    return (part / total) * 100.0 if total > 0 else 0.0


def _js_round(x: float) -> int:
    # half-up, not banker's rounding
    return int(floor(x + 0.5))


def diversification_score(hhi: float) -> int:
    """HHI (0-10000) → 1..10, higher = more diversified."""
    return max(1, min(10, _js_round(10 - (hhi / 10000.0) * 9)))


def _by_abs_value(positions: Iterable[ClassifiedPosition]) -> List[ClassifiedPosition]:
    return sorted(positions, key=lambda p: abs(p.market_value), reverse=True)


def classify_position(pos: PortfolioPosition, taxonomy: Optional[Taxonomy] = None) -> ClassifiedPosition:
    c = classify(pos.symbol, pos.asset_type, pos.description, taxonomy=taxonomy)
    category = display_category(pos.asset_type, pos.description)
    return ClassifiedPosition(
        symbol=pos.symbol,
        description=pos.description or "",
        asset_class_id=c.asset_class_id,
        sub_class_id=c.sub_class_id,
        sub_category=c.sub_category,
        underlying_class_id=c.underlying_class_id,
        quantity=pos.quantity - pos.short_quantity,
        average_price=pos.average_price,
        market_value=pos.market_value,
        current_day_profit_loss=pos.current_day_profit_loss,
        current_day_profit_loss_percentage=pos.current_day_profit_loss_percentage,
        instrument_type=pos.asset_type,
        display_category=category,
        display_category_label=display_category_label(category),
        account_id=pos.account_id,
    )


def classify_positions(
    positions: Iterable[PortfolioPosition], taxonomy: Optional[Taxonomy] = None
) -> List[ClassifiedPosition]:
    tx = taxonomy or get_default_taxonomy()
    return [classify_position(p, tx) for p in positions]


def _split_accounts(accounts: Iterable[AccountBalanceInput], tx: Taxonomy) -> tuple[float, float]:
    cash_terms: List[float] = []
    liability_terms: List[float] = []
    for acct in accounts:
        if tx.is_liability(acct.account_category):
            # already negative for credit/loan
            liability_terms.append(acct.liquidation_value if acct.liquidation_value is not None else 0.0)
        else:
            cash_terms.append(acct.cash_balance if acct.cash_balance is not None else 0.0)
    return fsum(cash_terms), fsum(liability_terms)


def _fallback_def(class_id: str) -> AssetClassDef:
    return AssetClassDef(id=class_id, label=class_id, color="gray", chart_color="#9ca3af", order=999)


def aggregate(
    positions: List[ClassifiedPosition],
    accounts: List[AccountBalanceInput],
    taxonomy: Optional[Taxonomy] = None,
    settings: Optional[Settings] = None,
) -> ClassifiedPortfolio:
    """
    Roll classified positions and account balances up into the portfolio view.

    Total value is positions + non-liability cash + liability balances (negative).
    Allocation percentages are relative to that total; with a non-positive total
    every percentage is 0. Cash and debt balances are folded into their classes
    as one pseudo-holding each, but never take part in the HHI.
    """
    tx = taxonomy or get_default_taxonomy()
    cfg = settings or get_settings()

    total_cash, liability_total = _split_accounts(accounts, tx)
    positions_value = fsum(p.market_value for p in positions)
    total_value = positions_value + total_cash + liability_total

    total_day_change = fsum(p.current_day_profit_loss for p in positions)
    base = total_value - total_day_change
    total_day_change_pct = (total_day_change / base) * 100.0 if total_value > 0 and base != 0 else 0.0

    classified = [
        p.model_copy(update={"allocation_pct": _pct(p.market_value, total_value)})
        for p in positions
    ]

    by_class: Dict[str, List[ClassifiedPosition]] = defaultdict(list)
    for p in classified:
        by_class[p.asset_class_id].append(p)

    defs = tx.ordered_asset_classes()
    known = {d.id for d in defs}
    for class_id in by_class:
        if class_id not in known:
            logger.warning("Positions reference unknown asset class %s", class_id)
            defs.append(_fallback_def(class_id))

    summaries: List[AssetClassSummary] = []
    for d in defs:
        members = _by_abs_value(by_class.get(d.id, []))
        extra = 0.0
        if d.id == tx.cash_class:
            extra = total_cash
        elif d.id == tx.debt_class:
            extra = liability_total

        market_value = fsum(p.market_value for p in members) + extra
        holding_count = len(members) + (1 if extra != 0 else 0)
        if market_value == 0 and holding_count == 0:
            continue
        summaries.append(AssetClassSummary(
            asset_class=d,
            market_value=market_value,
            day_change=fsum(p.current_day_profit_loss for p in members),
            allocation_pct=_pct(market_value, total_value),
            holding_count=holding_count,
            positions=members,
        ))

    hhi = fsum(p.allocation_pct ** 2 for p in classified)

    return ClassifiedPortfolio(
        total_market_value=total_value,
        total_day_change=total_day_change,
        total_day_change_pct=total_day_change_pct,
        holding_count=len(classified),
        cash_value=total_cash,
        cash_pct=_pct(total_cash, total_value),
        liability_value=liability_total,
        liability_pct=_pct(liability_total, total_value),
        asset_classes=summaries,
        hhi=hhi,
        diversification_score=diversification_score(hhi),
        safe_withdrawal_annual=total_value * cfg.safe_withdrawal_rate,
        crypto_breakdown=crypto_sub_aggregates(by_class.get(CRYPTO_CLASS, []), total_value),
        tech_breakdown=tech_sub_aggregates(
            by_class.get(TECH_CLASS, []), by_class.get(tx.option_class, []), total_value
        ),
        taxonomy_version=tx.version,
    )


def build_classified_portfolio(
    positions: Iterable[PortfolioPosition],
    accounts: List[AccountBalanceInput],
    taxonomy: Optional[Taxonomy] = None,
    settings: Optional[Settings] = None,
) -> ClassifiedPortfolio:
    """Classify normalized positions, then aggregate them with the account balances."""
    tx = taxonomy or get_default_taxonomy()
    return aggregate(classify_positions(positions, tx), accounts, taxonomy=tx, settings=settings)


# ─── Sub-aggregation helpers ───────────────────────────────────

def _sub_aggregate(label: str, items: List[ClassifiedPosition], total_value: float) -> SubAggregate:
    mv = fsum(p.market_value for p in items)
    return SubAggregate(
        label=label,
        market_value=mv,
        allocation_pct=_pct(mv, total_value),
        positions=_by_abs_value(items),
    )


_CRYPTO_GROUPS = (
    ("Bitcoin ETF", "Bitcoin ETF Aggregate"),
    ("Ethereum ETF", "Ethereum ETF Aggregate"),
    ("Crypto Stock", "Crypto Stocks"),
)


def crypto_sub_aggregates(positions: List[ClassifiedPosition], total_value: float) -> List[SubAggregate]:
    groups: Dict[str, List[ClassifiedPosition]] = {label: [] for _, label in _CRYPTO_GROUPS}
    groups["Other Crypto"] = []
    lookup = dict(_CRYPTO_GROUPS)
    for p in positions:
        groups[lookup.get(p.sub_category or "", "Other Crypto")].append(p)
    return [_sub_aggregate(label, items, total_value) for label, items in groups.items() if items]


def tech_sub_aggregates(
    tech_positions: List[ClassifiedPosition],
    option_positions: List[ClassifiedPosition],
    total_value: float,
) -> List[SubAggregate]:
    subs: List[SubAggregate] = []
    if tech_positions:
        subs.append(_sub_aggregate("Main Holdings", tech_positions, total_value))
    if option_positions:
        subs.append(_sub_aggregate("Tech Options", option_positions, total_value))
    return subs
