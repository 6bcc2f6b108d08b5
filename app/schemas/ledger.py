"""
Pydantic schemas for ledger entries.

All monetary amounts are whole currency units.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel


class LedgerEntryResponse(BaseModel):
    """Public representation of a ledger entry."""
    id: uuid.UUID
    account_id: uuid.UUID
    kind: str
    amount: int
    description: str
    occurred_at: datetime

    model_config = {"from_attributes": True}
