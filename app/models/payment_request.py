"""
PaymentRequest model — a recharge the user claims to have paid.

There is no payment gateway. The user pays out of band, then submits the
amount and the payment's reference number. An admin matches the reference
against the real payment and approves or rejects the request.

State machine:
  pending → approved   (credits the amount; may pay a referral commission)
  pending → rejected   (no balance effect; nothing was ever debited)

Both outcomes are terminal. A reference number may be approved at most
once across the whole system.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, ForeignKey, CheckConstraint, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class RequestStatus(str, enum.Enum):
    """Review state shared by recharge and withdrawal requests."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PaymentRequest(Base):
    __tablename__ = "payment_requests"

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_requests_positive_amount"),
        # A reference can be approved once, system-wide. Two concurrent approvals
        # of the same reference collide here even if they passed the pre-check.
        Index(
            "uq_payment_requests_approved_reference",
            "reference_number",
            unique=True,
            sqlite_where=text("status = 'approved'"),
            postgresql_where=text("status = 'approved'"),
        ),
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

    # Snapshot for the admin review screen
    phone: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Indexed: every approval checks for an earlier approval of the same reference
    reference_number: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=RequestStatus.PENDING.value,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    processed_by_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
    )
