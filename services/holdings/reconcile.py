"""
Holdings reconciliation: merge a full snapshot of positions into the ledger.

  1. Deduplicate the incoming batch by symbol (same symbol split across pages).
  2. Diff against the ledger rows keyed by symbol → new / quantity change /
     value update / unchanged. One change record per symbol at most.
  3. Write every touched row in full: one bulk insert for new holdings,
     bounded batches of updates for existing ones.
  4. When the batch is non-empty, zero out positive holdings missing from it
     (rows are kept, never deleted). An empty batch means "no data", not
     "everything closed".

Write failures are logged and skipped; counts in the result only include
successful writes, so callers can retry the whole run safely.
"""
from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config.settings import Settings, get_settings
from models.holding import Holding
from schemas.holding import (
    IncomingPosition,
    PositionState,
    ReconciliationChange,
    ReconciliationResult,
)
from services.holdings.ledger import HoldingLedger, HoldingUpdate

logger = logging.getLogger(__name__)

_ADDITIVE_FIELDS = (
    "short_quantity",
    "market_value",
    "cost_basis_total",
    "unrealized_profit_loss",
    "day_change_amount",
)
# point-in-time values: the last non-null one wins
_LAST_SEEN_FIELDS = (
    "market_price_per_share",
    "average_cost_basis",
    "unrealized_profit_loss_pct",
    "day_change_pct",
)


# ─── Per-account serialization ──────────────────────────────────────

_locks_guard = threading.Lock()
# entries disappear once no run holds the lock
_account_locks: "weakref.WeakValueDictionary[str, threading.RLock]" = weakref.WeakValueDictionary()


@contextmanager
def account_lock(account_id: str) -> Iterator[None]:
    """Serialize reconciliation runs for one account inside this process."""
    with _locks_guard:
        lock = _account_locks.get(account_id)
        if lock is None:
            lock = _account_locks[account_id] = threading.RLock()
    with lock:
        yield


# ─── Pure steps ─────────────────────────────────────────────

def normalize_symbol(symbol: Optional[str]) -> str:
    return (symbol or "").strip().upper()


def _add(current: Optional[float], extra: Optional[float]) -> Optional[float]:
    if extra is None:
        return current
    return (current or 0.0) + extra


def dedupe_positions(positions: Iterable[IncomingPosition]) -> Dict[str, IncomingPosition]:
    """
    Merge positions sharing a symbol. Quantities and money totals are summed;
    per-share price, average cost and percentages keep the last non-null value.
    Order of first appearance is preserved.
    """
    merged: Dict[str, IncomingPosition] = {}
    for p in positions:
        key = normalize_symbol(p.symbol)
        if not key:
            logger.warning("Skipping incoming position without symbol")
            continue
        existing = merged.get(key)
        if existing is None:
            merged[key] = p.model_copy(update={"symbol": key})
            continue

        updates: Dict[str, Any] = {"quantity": existing.quantity + p.quantity}
        for name in _ADDITIVE_FIELDS:
            updates[name] = _add(getattr(existing, name), getattr(p, name))
        for name in _LAST_SEEN_FIELDS:
            value = getattr(p, name)
            if value is not None:
                updates[name] = value
        merged[key] = existing.model_copy(update=updates)
    return merged


def holding_row(
    user_id: str,
    account_id: str,
    pos: IncomingPosition,
    provenance: str,
    data_source: str = "manual_upload",
    valuation_source: str = "statement",
) -> Dict[str, Any]:
    """Full column set written for every touched holding (no partial updates)."""
    return {
        "user_id": user_id,
        "account_id": account_id,
        "symbol": pos.symbol,
        "name": pos.symbol,
        "cusip": pos.cusip,
        "asset_type": pos.asset_type or "EQUITY",
        "asset_subtype": pos.asset_subtype,
        "description": pos.description,
        "quantity": pos.quantity,
        "short_quantity": pos.short_quantity or 0.0,
        "purchase_price": pos.average_cost_basis,
        "cost_basis_total": pos.cost_basis_total,
        "current_price": pos.market_price_per_share,
        "market_value": pos.market_value,
        "valuation_date": pos.snapshot_date,
        "valuation_source": valuation_source,
        "day_profit_loss": pos.day_change_amount,
        "day_profit_loss_pct": pos.day_change_pct,
        "unrealized_profit_loss": pos.unrealized_profit_loss,
        "unrealized_profit_loss_pct": pos.unrealized_profit_loss_pct,
        "data_source": data_source,
        "last_updated_from": provenance,
    }


@dataclass
class ReconciliationPlan:
    account_id: str
    provenance: str
    changes: List[ReconciliationChange] = field(default_factory=list)
    inserts: List[Dict[str, Any]] = field(default_factory=list)
    updates: List[HoldingUpdate] = field(default_factory=list)
    closures: List[Holding] = field(default_factory=list)


def _state(h: Holding) -> PositionState:
    return PositionState(quantity=float(h.quantity or 0.0), market_value=h.market_value)


def plan_reconciliation(
    user_id: str,
    account_id: str,
    existing: Sequence[Holding],
    incoming: Iterable[IncomingPosition],
    provenance: str,
    data_source: str = "manual_upload",
) -> ReconciliationPlan:
    """Diff a snapshot against ledger rows without touching the database."""
    plan = ReconciliationPlan(account_id=account_id, provenance=provenance)

    by_symbol: Dict[str, Holding] = {}
    for h in existing:
        key = normalize_symbol(h.symbol)
        if key:
            by_symbol[key] = h

    deduped = dedupe_positions(incoming)

    for symbol, pos in deduped.items():
        held = by_symbol.get(symbol)
        current = PositionState(quantity=pos.quantity, market_value=pos.market_value)

        if held is None:
            plan.changes.append(ReconciliationChange(
                type="new_position", symbol=symbol, name=symbol,
                account_id=account_id, current=current,
            ))
        elif float(held.quantity or 0.0) != pos.quantity:
            plan.changes.append(ReconciliationChange(
                type="quantity_change", symbol=symbol, name=held.name or symbol,
                account_id=account_id, previous=_state(held), current=current,
            ))
        elif pos.market_value is not None and held.market_value != pos.market_value:
            plan.changes.append(ReconciliationChange(
                type="value_update", symbol=symbol, name=held.name or symbol,
                account_id=account_id, previous=_state(held), current=current,
            ))

        row = holding_row(user_id, account_id, pos, provenance, data_source)
        if held is None:
            plan.inserts.append(row)
        else:
            plan.updates.append((held, row))

    # An empty batch is treated as "no data available" → nothing is closed.
    if deduped:
        for symbol, held in by_symbol.items():
            if symbol in deduped or float(held.quantity or 0.0) <= 0:
                continue
            plan.changes.append(ReconciliationChange(
                type="closed_position", symbol=symbol, name=held.name or symbol,
                account_id=account_id, previous=_state(held),
                current=PositionState(quantity=0.0, market_value=0.0),
            ))
            plan.closures.append(held)

    return plan


# ─── Writes ───────────────────────────────────────────────

def _chunks(items: Sequence[HoldingUpdate], size: int) -> Iterator[Sequence[HoldingUpdate]]:
    for i in range(0, len(items), size):
        yield items[i:i + size]


def apply_plan(
    plan: ReconciliationPlan,
    ledger: HoldingLedger,
    batch_size: int = 10,
) -> ReconciliationResult:
    result = ReconciliationResult(changes=plan.changes)

    if plan.inserts:
        try:
            result.created = ledger.insert_many(plan.inserts)
        except SQLAlchemyError:
            logger.exception(
                "Failed to batch insert %d holdings for account %s",
                len(plan.inserts), plan.account_id,
            )
            result.failed += len(plan.inserts)

    for batch in _chunks(plan.updates, max(1, batch_size)):
        try:
            result.updated += ledger.update_batch(batch)
            continue
        except SQLAlchemyError:
            logger.warning(
                "Update batch of %d failed for account %s; retrying row by row",
                len(batch), plan.account_id,
            )
        for holding, data in batch:
            try:
                ledger.update_one(holding, data)
                result.updated += 1
            except SQLAlchemyError:
                logger.exception("Failed to update holding %s (%s)", holding.id, data.get("symbol"))
                result.failed += 1

    if plan.closures:
        ids = [h.id for h in plan.closures]
        try:
            result.closed = ledger.close_many(ids, plan.provenance)
        except SQLAlchemyError:
            logger.exception("Failed to close %d holdings for account %s", len(ids), plan.account_id)
            result.failed += len(ids)

    result.upserted = result.created + result.updated
    return result


def reconcile_holdings(
    db: Session,
    user_id: str,
    account_id: str,
    incoming: Iterable[IncomingPosition],
    provenance: str,
    *,
    existing: Optional[Sequence[Holding]] = None,
    data_source: str = "manual_upload",
    settings: Optional[Settings] = None,
) -> ReconciliationResult:
    """
    Reconcile one account's ledger against a full snapshot.

    `existing` defaults to the account's rows loaded from `db`; when given it
    must be rows attached to the same session. Does not commit.
    """
    cfg = settings or get_settings()
    with account_lock(account_id):
        ledger = HoldingLedger(db)
        rows = list(existing) if existing is not None else ledger.load(account_id)
        plan = plan_reconciliation(user_id, account_id, rows, incoming, provenance, data_source)
        result = apply_plan(plan, ledger, cfg.reconcile_update_batch_size)

    logger.info(
        "Reconciled account %s: new=%d qty_changed=%d value_updated=%d closed=%d upserted=%d failed=%d",
        account_id,
        result.count("new_position"),
        result.count("quantity_change"),
        result.count("value_update"),
        result.count("closed_position"),
        result.upserted,
        result.failed,
        extra={"account_id": account_id, "provenance": provenance},
    )
    return result
