"""create accounts and holdings

Revision ID: 3a9c1e7f2b40
Revises:
Create Date: 2026-02-14
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "3a9c1e7f2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("account_nickname", sa.String(), nullable=True),
        sa.Column("institution_name", sa.String(), nullable=True),
        sa.Column("account_category", sa.String(), nullable=False, server_default="brokerage"),
        sa.Column("data_source", sa.String(), nullable=False, server_default="manual_upload"),
        sa.Column("is_aggregate", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("total_market_value", sa.Float(), nullable=True),
        sa.Column("equity_value", sa.Float(), nullable=True),
        sa.Column("cash_balance", sa.Float(), nullable=True),
        sa.Column("buying_power", sa.Float(), nullable=True),
        sa.Column("holdings_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_accounts_user_id", "accounts", ["user_id"], unique=False)

    op.create_table(
        "holdings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("account_id", sa.String(), sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("symbol", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("cusip", sa.String(), nullable=True),
        sa.Column("asset_type", sa.String(), nullable=False, server_default="EQUITY"),
        sa.Column("asset_subtype", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False, server_default="0"),
        sa.Column("short_quantity", sa.Float(), nullable=False, server_default="0"),
        sa.Column("purchase_price", sa.Float(), nullable=True),
        sa.Column("cost_basis_total", sa.Float(), nullable=True),
        sa.Column("current_price", sa.Float(), nullable=True),
        sa.Column("market_value", sa.Float(), nullable=True),
        sa.Column("valuation_date", sa.Date(), nullable=True),
        sa.Column("valuation_source", sa.String(), nullable=True),
        sa.Column("day_profit_loss", sa.Float(), nullable=True),
        sa.Column("day_profit_loss_pct", sa.Float(), nullable=True),
        sa.Column("unrealized_profit_loss", sa.Float(), nullable=True),
        sa.Column("unrealized_profit_loss_pct", sa.Float(), nullable=True),
        sa.Column("data_source", sa.String(), nullable=False, server_default="manual_upload"),
        sa.Column("last_updated_from", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("account_id", "symbol", name="uq_holdings_account_symbol"),
    )
    op.create_index("ix_holdings_user_id", "holdings", ["user_id"], unique=False)
    op.create_index("ix_holdings_account_id", "holdings", ["account_id"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_holdings_account_id", table_name="holdings")
    op.drop_index("ix_holdings_user_id", table_name="holdings")
    op.drop_table("holdings")
    op.drop_index("ix_accounts_user_id", table_name="accounts")
    op.drop_table("accounts")
