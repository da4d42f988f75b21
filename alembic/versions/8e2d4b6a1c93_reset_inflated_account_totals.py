"""reset inflated account totals

Revision ID: 8e2d4b6a1c93
Revises: 3a9c1e7f2b40
Create Date: 2026-02-19

Accounts that picked up a large extracted liquidation value with no holdings
behind it keep that total until their next sync. Reset them to the computed
equity + cash, using the same thresholds as the inflation guard defaults.
"""
from typing import Sequence, Union

from alembic import op


revision: str = "8e2d4b6a1c93"
down_revision: Union[str, None] = "3a9c1e7f2b40"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(
        """
        UPDATE accounts
        SET total_market_value = COALESCE(equity_value, 0) + COALESCE(cash_balance, 0)
        WHERE holdings_count = 0
          AND is_aggregate = false
          AND account_category IN ('brokerage', 'offline')
          AND ABS(total_market_value) > 1000
          AND ABS(COALESCE(equity_value, 0)) < ABS(total_market_value) * 0.5
        """
    )


def downgrade() -> None:
    """No-op: the reported totals are not kept anywhere."""
