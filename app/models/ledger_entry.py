"""
LedgerEntry model — the append-only history of every balance movement.

Every change to an account's balance creates at least one LedgerEntry in
the same database transaction:

  - Registration bonus, daily yields, gift codes, approved recharges,
    referral commissions and withdrawal refunds are CREDITS
  - Plant purchases and withdrawal requests are DEBITS

Key fields:
  - kind: "credit" or "debit" — the direction of money flow
  - amount: Always positive (the direction is implied by kind)
  - occurred_at: When the movement economically happened. Usually "now";
    catch-up yield accrual backdates it to the end of each 24h cycle so the
    history reads in the order the money was earned.
  - created_at: When the row was actually written

Immutability:
  Entries are never updated or deleted. The ORM refuses to flush either
  operation (see the mapper event listeners at the bottom), so a bug
  can't quietly rewrite history.

Reconciliation:
  For every account, balance == Σ credit amounts − Σ debit amounts.
  app.services.balance_service.get_balance() reports both sides.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, event
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class EntryKind(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    __table_args__ = (
        # Always positive; kind gives the direction
        CheckConstraint("amount > 0", name="ck_ledger_entries_positive_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    kind: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    description: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Indexed for date-ordered history queries
    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    @property
    def signed_amount(self) -> int:
        return self.amount if self.kind == EntryKind.CREDIT.value else -self.amount


@event.listens_for(LedgerEntry, "before_update")
def _refuse_update(mapper, connection, target):
    raise RuntimeError(f"Ledger entry {target.id} is immutable")


@event.listens_for(LedgerEntry, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise RuntimeError(f"Ledger entry {target.id} cannot be deleted")
