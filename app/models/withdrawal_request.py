"""
WithdrawalRequest model — a payout of balance to the user's Nequi account.

Unlike a recharge, the money leaves the balance when the request is
CREATED (debit + ledger entry), so the user can't spend it twice while the
request waits for review.

State machine:
  pending → approved   (no balance effect; the admin pays out net_amount)
  pending → rejected   (refund: credits `amount` back with a new ledger entry)

The payout destination is copied from the account at request time and
stored Fernet-encrypted, so editing payout details later doesn't redirect
a request that is already in the queue.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.payment_request import RequestStatus


class WithdrawalRequest(Base):
    __tablename__ = "withdrawal_requests"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_withdrawal_requests_positive_amount"),
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

    phone: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # Amount debited from the balance
    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    # floor(amount × fee_percentage / 100), kept by the platform
    fee_amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )
    # What the admin actually sends: amount − fee_amount
    net_amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    destination_encrypted: Mapped[bytes] = mapped_column(
        LargeBinary,
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=RequestStatus.PENDING.value,
        index=True,
    )

    requested_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    processed_by_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
    )
