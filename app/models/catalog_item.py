"""
CatalogItem model — an "energy plant" offering users can buy.

Each unit bought becomes one PurchasedPosition that pays
`price × daily_yield_percent / 100` every 24 hours for `duration_days`.

Time-limited offers:
  When `is_time_limited` is set, the item can only be bought until
  `time_limit_set_at + time_limit_hours`. Positions already bought keep
  accruing after the offer closes.

The core only reads catalog items; admins create them through
POST /admin/catalog.
"""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import String, Integer, Float, Boolean, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.timeutils import as_utc


class CatalogItem(Base):
    __tablename__ = "catalog_items"

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_catalog_items_positive_price"),
        CheckConstraint("purchase_limit >= 1", name="ck_catalog_items_purchase_limit"),
        CheckConstraint("duration_days >= 0", name="ck_catalog_items_duration"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    # Unit price in whole currency units
    price: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Percent of the price paid per 24h cycle, e.g. 2.5 means 2.5%
    daily_yield_percent: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )

    # Max units a single account may own, counting all past purchases
    purchase_limit: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    duration_days: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    is_time_limited: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    time_limit_hours: Mapped[int | None] = mapped_column(
        Integer,
        nullable=True,
    )
    time_limit_set_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    created_by_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
    )

    @property
    def offer_ends_at(self) -> datetime | None:
        """End of the sale window, or None when the item is always on sale."""
        if not (self.is_time_limited and self.time_limit_hours and self.time_limit_set_at):
            return None
        return as_utc(self.time_limit_set_at) + timedelta(hours=self.time_limit_hours)

    def is_on_sale(self, now: datetime) -> bool:
        ends_at = self.offer_ends_at
        return ends_at is None or now < ends_at
