"""
Account model — the balance-holding entity of a registered user.

Each account has:
  - A balance in integer currency units (updated atomically with ledger entries)
  - A version counter used for optimistic concurrency
  - Its own 6-digit referral code, and optionally the code it was invited with
  - A role: "user", "admin" or "superadmin"
  - Optional payout details (Nequi account, name, ID number), Fernet-encrypted

Balance management:
  `balance` is the fast-read copy of the account's money. It is only ever
  changed by app.services.balance_service.apply_delta(), in the same
  database transaction as the ledger entries that explain the change, so
  it always equals the signed sum of the account's ledger.

  A CHECK constraint at the database level enforces that the balance can
  never go negative. The application checks before debiting; the
  constraint is the final safety net.

Version counter:
  `version` is registered as the mapper's version_id_col. SQLAlchemy sets
  it to 1 on INSERT and bumps it by one on every UPDATE, adding
  "AND version = <value we read>" to the WHERE clause. A concurrent writer
  therefore makes our flush fail with StaleDataError instead of silently
  overwriting its balance change (a lost update).

Referrals:
  The accounts an account referred are those whose `invited_by_code`
  equals its `referral_code`. The set is derived by query rather than
  stored, so registering a referred user never has to write (and
  version-bump) the referrer's row.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, Enum, ForeignKey, CheckConstraint, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class AccountRole(str, enum.Enum):
    """
    Capability level of an account.

    Inherits from str so the enum value serializes naturally to JSON.
    """
    USER = "user"               # Regular participant
    ADMIN = "admin"             # Reviews recharges/withdrawals, manages catalog and gift codes
    SUPERADMIN = "superadmin"   # Admin + business settings and role changes


class Account(Base):
    __tablename__ = "accounts"

    # Database-level constraint: balance can never be negative
    __table_args__ = (
        CheckConstraint(
            "balance >= 0",
            name="ck_accounts_non_negative_balance",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # One account per identity
    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id"),
        unique=True,
        nullable=False,
    )

    # Denormalized from User so admin listings don't need a JOIN
    phone: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # Short human-friendly id shown to support staff
    display_id: Mapped[str] = mapped_column(
        String(7),
        nullable=False,
    )

    balance: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    referral_code: Mapped[str] = mapped_column(
        String(6),
        unique=True,
        nullable=False,
        index=True,
    )

    # Upper-cased code of the referrer, NULL when the user signed up alone
    invited_by_code: Mapped[str | None] = mapped_column(
        String(6),
        nullable=True,
        index=True,
    )

    role: Mapped[AccountRole] = mapped_column(
        Enum(AccountRole),
        default=AccountRole.USER,
        nullable=False,
    )

    # Fernet-encrypted JSON: {"nequi_account", "full_name", "id_number"}
    withdrawal_info_encrypted: Mapped[bytes | None] = mapped_column(
        LargeBinary,
        nullable=True,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    # --- Relationships ---
    user: Mapped["User"] = relationship(
        back_populates="account",
    )

    @property
    def has_withdrawal_info(self) -> bool:
        return self.withdrawal_info_encrypted is not None
