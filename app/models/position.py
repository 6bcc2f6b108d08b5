"""
PurchasedPosition model — one yield-bearing unit bought from the catalog.

Buying N units creates N positions, each with its own purchase_date and
accrual cursor. The catalog item's terms (price, yield, duration, name)
are copied onto the position at purchase time, so later catalog edits
never change what an existing position pays.

Accrual cursor:
  `last_yield_date` is NULL until the first 24h cycle is credited, then
  moves forward in exact 24h steps from `purchase_date`. It is advanced in
  the same database transaction as the balance credit, which is what
  makes catch-up accrual idempotent.

Status:
  "active" → "completed", one-way, once purchase_date + duration_days has
  passed. The final partial cycle is never paid.
"""

import enum
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import String, Integer, Float, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.timeutils import as_utc


class PositionStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"


class PurchasedPosition(Base):
    __tablename__ = "purchased_positions"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    catalog_item_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("catalog_items.id"),
        nullable=False,
        index=True,
    )

    # --- Terms copied from the catalog item at purchase time ---
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )
    unit_price: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    daily_yield_percent: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )
    duration_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    purchase_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    last_yield_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=PositionStatus.ACTIVE.value,
        index=True,
    )

    @property
    def expires_at(self) -> datetime:
        return as_utc(self.purchase_date) + timedelta(days=self.duration_days)
