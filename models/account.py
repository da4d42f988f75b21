import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[str] = mapped_column(primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id: Mapped[str] = mapped_column(index=True)
    account_nickname: Mapped[str | None] = mapped_column(nullable=True)
    institution_name: Mapped[str | None] = mapped_column(nullable=True)
    # brokerage | banking | credit | loan | real_estate | offline
    account_category: Mapped[str] = mapped_column(default="brokerage")
    data_source: Mapped[str] = mapped_column(default="manual_upload")
    # holds positions spanning several real accounts; its reported total is trusted
    is_aggregate: Mapped[bool] = mapped_column(default=False)

    # Summary columns, recomputed after every reconciliation
    total_market_value: Mapped[float | None] = mapped_column(nullable=True)
    equity_value: Mapped[float | None] = mapped_column(nullable=True)
    cash_balance: Mapped[float | None] = mapped_column(nullable=True)
    buying_power: Mapped[float | None] = mapped_column(nullable=True)
    holdings_count: Mapped[int] = mapped_column(default=0)
    last_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    holdings = relationship("Holding", back_populates="account", cascade="all, delete-orphan")
