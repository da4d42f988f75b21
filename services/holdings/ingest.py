"""
One ingestion cycle for one account: reconcile the snapshot, recompute the
account summary, commit. Used by the snapshot route and by sync jobs.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from config.settings import Settings
from models.account import Account
from schemas.holding import BalanceRecord, IncomingPosition, IngestResult
from services.errors import AccountNotFoundError
from services.holdings.account_summary import recompute_account_summary
from services.holdings.reconcile import account_lock, reconcile_holdings

logger = logging.getLogger(__name__)


def ingest_account_snapshot(
    db: Session,
    user_id: str,
    account_id: str,
    positions: Iterable[IncomingPosition],
    provenance: str,
    balance: Optional[BalanceRecord] = None,
    trust_external_total: Optional[bool] = None,
    data_source: str = "manual_upload",
    settings: Optional[Settings] = None,
) -> IngestResult:
    account = db.get(Account, account_id)
    if account is None or account.user_id != user_id:
        raise AccountNotFoundError(account_id)

    with account_lock(account_id):
        try:
            reconciliation = reconcile_holdings(
                db, user_id, account_id, positions, provenance,
                data_source=data_source, settings=settings,
            )
            summary = recompute_account_summary(
                db, account_id, balance,
                trust_external_total=trust_external_total, settings=settings,
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception(
                "Ingestion failed for account %s (%s)", account_id, provenance,
                extra={"account_id": account_id, "provenance": provenance},
            )
            raise

    return IngestResult(reconciliation=reconciliation, account=summary)
