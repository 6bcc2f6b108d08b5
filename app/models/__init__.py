"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from app.models directly
"""

from app.models.user import User  # noqa: F401
from app.models.account import Account, AccountRole  # noqa: F401
from app.models.ledger_entry import LedgerEntry, EntryKind  # noqa: F401
from app.models.catalog_item import CatalogItem  # noqa: F401
from app.models.position import PurchasedPosition, PositionStatus  # noqa: F401
from app.models.gift_code import GiftCode, GiftCodeRedemption  # noqa: F401
from app.models.payment_request import PaymentRequest, RequestStatus  # noqa: F401
from app.models.withdrawal_request import WithdrawalRequest  # noqa: F401
from app.models.config_document import ConfigDocument  # noqa: F401
