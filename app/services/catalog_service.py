"""
Catalog service — energy plant offerings.

Members list the catalog; admins add items. The catalog is read-only as
far as purchases and accrual are concerned.
"""

import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import NotFoundError
from app.models.catalog_item import CatalogItem
from app.schemas.catalog import CatalogItemCreateRequest
from app.timeutils import utc_now


async def create_item(
    db: AsyncSession,
    request: CatalogItemCreateRequest,
    created_by: uuid.UUID | None = None,
    now: datetime | None = None,
) -> CatalogItem:
    """Add an item. A time-limited offer's clock starts now."""
    item = CatalogItem(
        id=uuid.uuid4(),
        name=request.name,
        price=request.price,
        daily_yield_percent=request.daily_yield_percent,
        purchase_limit=request.purchase_limit,
        duration_days=request.duration_days,
        is_time_limited=request.is_time_limited,
        time_limit_hours=request.time_limit_hours if request.is_time_limited else None,
        time_limit_set_at=(now or utc_now()) if request.is_time_limited else None,
        created_by_account_id=created_by,
    )
    db.add(item)
    await db.flush()
    return item


async def get_item(db: AsyncSession, item_id: uuid.UUID) -> CatalogItem:
    item = await db.get(CatalogItem, item_id)
    if item is None:
        raise NotFoundError("Catalog item", item_id)
    return item


async def list_items(db: AsyncSession, now: datetime | None = None) -> list[CatalogItem]:
    """
    List the catalog: open time-limited offers first, then by price.

    Closed time-limited offers are still listed (their positions keep
    paying) but sort with the regular items.
    """
    now = now or utc_now()
    result = await db.execute(select(CatalogItem))
    items = list(result.scalars().all())

    def sort_key(item: CatalogItem):
        open_offer = item.offer_ends_at is not None and item.is_on_sale(now)
        return (not open_offer, item.price, item.name)

    return sorted(items, key=sort_key)
