import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pydantic import BaseModel, ConfigDict

from database import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Holding(Base):
    """Current state of one (account, symbol) pair. Closed positions keep their row with quantity 0."""
    __tablename__ = "holdings"

    id: Mapped[str] = mapped_column(primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(index=True)
    account_id: Mapped[str] = mapped_column(ForeignKey("accounts.id", ondelete="CASCADE"), index=True)

    symbol: Mapped[str | None] = mapped_column(nullable=True)
    name: Mapped[str] = mapped_column()
    cusip: Mapped[str | None] = mapped_column(nullable=True)
    asset_type: Mapped[str] = mapped_column(default="EQUITY")
    asset_subtype: Mapped[str | None] = mapped_column(nullable=True)
    description: Mapped[str | None] = mapped_column(nullable=True)

    quantity: Mapped[float] = mapped_column(default=0.0)
    short_quantity: Mapped[float] = mapped_column(default=0.0)
    purchase_price: Mapped[float | None] = mapped_column(nullable=True)      # average cost per unit
    cost_basis_total: Mapped[float | None] = mapped_column(nullable=True)
    current_price: Mapped[float | None] = mapped_column(nullable=True)
    market_value: Mapped[float | None] = mapped_column(nullable=True)
    valuation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    valuation_source: Mapped[str | None] = mapped_column(nullable=True)

    day_profit_loss: Mapped[float | None] = mapped_column(nullable=True)
    day_profit_loss_pct: Mapped[float | None] = mapped_column(nullable=True)
    unrealized_profit_loss: Mapped[float | None] = mapped_column(nullable=True)
    unrealized_profit_loss_pct: Mapped[float | None] = mapped_column(nullable=True)

    data_source: Mapped[str] = mapped_column(default="manual_upload")
    last_updated_from: Mapped[str | None] = mapped_column(nullable=True)   # e.g. "upload:<statement id>"

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now, onupdate=_now)

    account = relationship("Account", back_populates="holdings")

    __table_args__ = (
        UniqueConstraint("account_id", "symbol", name="uq_holdings_account_symbol"),
    )


class HoldingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    account_id: str
    symbol: str | None = None
    name: str | None = None
    asset_type: str | None = None
    asset_subtype: str | None = None
    description: str | None = None
    quantity: float = 0.0
    short_quantity: float = 0.0
    purchase_price: float | None = None
    cost_basis_total: float | None = None
    current_price: float | None = None
    market_value: float | None = None
    valuation_date: date | None = None
    day_profit_loss: float | None = None
    day_profit_loss_pct: float | None = None
    unrealized_profit_loss: float | None = None
    unrealized_profit_loss_pct: float | None = None
    data_source: str | None = None
    last_updated_from: str | None = None


def to_dto(h: Holding) -> HoldingOut:
    return HoldingOut.model_validate(h)
