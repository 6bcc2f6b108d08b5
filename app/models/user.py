"""
User model — the authentication identity.

Each User represents a login credential (phone number + hashed password).
The User is separate from Account intentionally:

  - User handles authentication (who are you?)
  - Account handles the balance, referrals and role (what do you hold, what may you do?)

Identity is the thin edge of the system: the rest of the code only ever
needs "which account is making this call", which the dependency layer
resolves from the JWT subject.

The password is stored as an Argon2id hash — never in plaintext.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Login identifier
    phone: Mapped[str] = mapped_column(
        String(20),
        unique=True,
        nullable=False,
        index=True,
    )

    # Argon2id hash of the password (never store plaintext!)
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Soft-disable: deactivated users can't log in but their data is preserved
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # --- Relationships ---
    account: Mapped["Account"] = relationship(
        back_populates="user",
        uselist=False,
    )
