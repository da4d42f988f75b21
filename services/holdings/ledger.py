"""
Write access to the holdings table for the reconciler.

Every write runs inside its own SAVEPOINT so a failure only rolls back that
write; the surrounding transaction (and commit) belongs to the caller.
Methods raise SQLAlchemyError on failure and leave logging to the caller.
"""
from __future__ import annotations

from typing import Any, Dict, List, Sequence, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models.holding import Holding

HoldingUpdate = Tuple[Holding, Dict[str, Any]]


class HoldingLedger:
    def __init__(self, db: Session):
        self.db = db

    def load(self, account_id: str) -> List[Holding]:
        stmt = (
            select(Holding)
            .where(Holding.account_id == account_id)
            .order_by(Holding.symbol, Holding.id)
        )
        return list(self.db.scalars(stmt))

    def insert_many(self, rows: Sequence[Dict[str, Any]]) -> int:
        """One bulk insert for all new holdings."""
        if not rows:
            return 0
        with self.db.begin_nested():
            self.db.add_all([Holding(**row) for row in rows])
        return len(rows)

    def update_batch(self, updates: Sequence[HoldingUpdate]) -> int:
        """Apply several full-row updates and flush them together."""
        if not updates:
            return 0
        with self.db.begin_nested():
            for holding, data in updates:
                _assign(holding, data)
        return len(updates)

    def update_one(self, holding: Holding, data: Dict[str, Any]) -> None:
        with self.db.begin_nested():
            _assign(holding, data)

    def close_many(self, holding_ids: Sequence[str], provenance: str) -> int:
        """Zero out closed positions in one statement; rows are kept for the audit trail."""
        if not holding_ids:
            return 0
        with self.db.begin_nested():
            result = self.db.execute(
                update(Holding)
                .where(Holding.id.in_(list(holding_ids)))
                .values(
                    quantity=0.0,
                    short_quantity=0.0,
                    market_value=0.0,
                    last_updated_from=provenance,
                )
            )
        return result.rowcount if result.rowcount is not None and result.rowcount >= 0 else len(holding_ids)


def _assign(holding: Holding, data: Dict[str, Any]) -> None:
    for key, value in data.items():
        setattr(holding, key, value)
