"""
GiftCode and GiftCodeRedemption models.

A gift code credits a fixed amount to each account that redeems it, up to
`usage_limit` accounts, until `created_at + expires_in_minutes`.

Codes are stored upper-cased; lookups normalize the user's input the same
way, so "promo5" and "PROMO5" are the same code.

Concurrency:
  Two guards keep the redeemed-by set honest under concurrent redemptions:
    1. (gift_code_id, account_id) is UNIQUE on gift_code_redemptions, so
       one account can never appear twice.
    2. GiftCode has its own version_id_col and every redemption bumps
       `times_redeemed`. Two accounts racing for the last use both try
       to UPDATE the same version; one loses with StaleDataError, retries,
       and then sees the limit reached.
"""

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base
from app.timeutils import as_utc


class GiftCode(Base):
    __tablename__ = "gift_codes"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_gift_codes_positive_amount"),
        CheckConstraint("times_redeemed <= usage_limit", name="ck_gift_codes_usage"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Always upper case
    code: Mapped[str] = mapped_column(
        String(32),
        unique=True,
        nullable=False,
        index=True,
    )

    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    usage_limit: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    expires_in_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    times_redeemed: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    redemptions: Mapped[list["GiftCodeRedemption"]] = relationship(
        back_populates="gift_code",
        lazy="selectin",
    )

    @property
    def expires_at(self) -> datetime:
        return as_utc(self.created_at) + timedelta(minutes=self.expires_in_minutes)

    @property
    def redeemed_by(self) -> set[uuid.UUID]:
        return {r.account_id for r in self.redemptions}


class GiftCodeRedemption(Base):
    __tablename__ = "gift_code_redemptions"

    __table_args__ = (
        UniqueConstraint("gift_code_id", "account_id", name="uq_gift_code_redemptions_once"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    gift_code_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("gift_codes.id"),
        nullable=False,
        index=True,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    redeemed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    gift_code: Mapped[GiftCode] = relationship(
        back_populates="redemptions",
    )
