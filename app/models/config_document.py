"""
ConfigDocument model — runtime business settings stored as JSON.

Two documents exist, keyed "referrals" and "withdrawals". Their shape is
validated by the pydantic models in app.schemas.settings on every read
and write; missing keys fall back to defaults, so an empty table is a
valid configuration.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, ForeignKey, JSON
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class ConfigDocument(Base):
    __tablename__ = "config_documents"

    key: Mapped[str] = mapped_column(
        String(50),
        primary_key=True,
    )

    data: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_by_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
    )
