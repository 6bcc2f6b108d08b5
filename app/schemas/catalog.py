"""
Pydantic schemas for the catalog, purchases and purchased positions.

All monetary amounts are whole currency units. Yield percentages are plain
percent values (2.5 means 2.5% of the unit price per 24h cycle).
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field, model_validator

from app.schemas.ledger import LedgerEntryResponse


class CatalogItemCreateRequest(BaseModel):
    """Request body for POST /admin/catalog."""
    name: str = Field(min_length=1, max_length=100)
    price: int = Field(gt=0)
    daily_yield_percent: float = Field(gt=0, le=100)
    purchase_limit: int = Field(ge=1)
    duration_days: int = Field(ge=0)
    is_time_limited: bool = False
    time_limit_hours: int | None = Field(None, gt=0)

    @model_validator(mode="after")
    def time_limit_needs_hours(self):
        """A time-limited offer must say how long it runs."""
        if self.is_time_limited and self.time_limit_hours is None:
            raise ValueError("time_limit_hours is required for time-limited items")
        return self


class CatalogItemResponse(BaseModel):
    id: uuid.UUID
    name: str
    price: int
    daily_yield_percent: float
    purchase_limit: int
    duration_days: int
    is_time_limited: bool
    time_limit_hours: int | None
    offer_ends_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class PurchaseRequest(BaseModel):
    """Request body for POST /catalog/{item_id}/purchase."""
    quantity: int = Field(1, ge=1, le=1000)


class PositionResponse(BaseModel):
    id: uuid.UUID
    catalog_item_id: uuid.UUID
    name: str
    unit_price: int
    daily_yield_percent: float
    duration_days: int
    purchase_date: datetime
    last_yield_date: datetime | None
    status: str

    model_config = {"from_attributes": True}


class PurchaseResponse(BaseModel):
    positions: list[PositionResponse]
    ledger_entry: LedgerEntryResponse
    balance: int
