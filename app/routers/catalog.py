"""
Catalog router — browsing and buying energy plants.

Endpoints:
  GET  /catalog                     — List the catalog (open offers first)
  POST /catalog/{item_id}/purchase  — Buy one or more units with balance

Adding items is an admin operation and lives in the admin router.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_account
from app.models.account import Account
from app.schemas.catalog import (
    CatalogItemResponse,
    PositionResponse,
    PurchaseRequest,
    PurchaseResponse,
)
from app.schemas.ledger import LedgerEntryResponse
from app.services import catalog_service, purchase_service

router = APIRouter()


@router.get(
    "",
    response_model=list[CatalogItemResponse],
    summary="List the catalog",
)
async def list_catalog(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.list_items(db)


@router.post(
    "/{item_id}/purchase",
    response_model=PurchaseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Buy an energy plant",
)
async def purchase_item(
    item_id: uuid.UUID,
    request: PurchaseRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Buy `quantity` units of a catalog item.

    The total price is debited in one ledger entry and one position is
    created per unit. Fails without any effect if the balance is short,
    the per-account limit would be exceeded, or a time-limited offer has
    closed.
    """
    result = await purchase_service.purchase(db, account.id, item_id, request.quantity)

    return PurchaseResponse(
        positions=[PositionResponse.model_validate(p) for p in result.positions],
        ledger_entry=LedgerEntryResponse.model_validate(result.ledger_entry),
        balance=result.balance,
    )
