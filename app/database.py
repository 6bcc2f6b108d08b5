"""
Database engine, session management, base model class, and the atomic-unit runner.

This module sets up SQLAlchemy 2.0 with async support. Key components:

  - engine: The async database engine (connection pool for production DBs)
  - AsyncSessionLocal: Factory for creating async database sessions
  - Base: Declarative base class that all ORM models inherit from
  - get_db(): FastAPI dependency that provides a session per request
  - run_atomic(): Runs one balance-mutating unit with conflict retries

Session lifecycle:
  Each API request gets its own session via get_db(). The session commits
  on success and rolls back on ANY exception, domain errors included: a
  rejected operation must leave balances and the ledger exactly as they were.

Optimistic concurrency:
  Account rows carry a version column registered as SQLAlchemy's
  version_id_col. Every UPDATE of an account is emitted as
  "... WHERE id = :id AND version = :expected" and bumps the version. If
  another writer got there first, the UPDATE matches zero rows and the
  flush raises StaleDataError. run_atomic() rolls the session back and
  re-runs the whole unit so it re-reads the fresh balance.
"""

import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.orm.exc import StaleDataError

from app.config import settings
from app.exceptions import PersistenceError, RewardsAPIError, TransactionConflictError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Create the async engine.
# echo=True in debug mode logs every SQL statement.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
)

# Session factory: creates new AsyncSession instances.
# expire_on_commit=False: committed objects stay readable without an
# implicit (sync) refresh, which async sessions cannot do.
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class, which provides:
      - Metadata tracking for table creation and migrations
      - Common declarative mapping features
    """
    pass


async def get_db():
    """
    FastAPI dependency that provides a database session.

    Usage in a route:
        @router.get("/items")
        async def list_items(db: AsyncSession = Depends(get_db)):
            ...

    The session is committed on success and rolled back on any exception,
    then closed when the request completes.
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def run_atomic(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int | None = None,
) -> T:
    """
    Execute one atomic unit, retrying it on optimistic-concurrency conflicts.

    `operation` must do ALL of its reads inside itself (never reuse ORM
    objects loaded before the call), because a retry rolls the session
    back and every previously loaded instance is expired.

    Conflicts are version mismatches on an account row (StaleDataError from
    the versioned UPDATE, TransactionConflictError from an expected_version
    check) and unique-constraint races (IntegrityError), e.g. two
    redemptions of the same gift code by the same account landing at once.
    All of them are retried; the re-run sees the winner's committed state
    and usually fails validation cleanly.

    Raises:
        TransactionConflictError: If every attempt hit a conflict.
        PersistenceError: If the store fails for any other reason.
        RewardsAPIError: Domain errors raised by the operation, unchanged.
    """
    max_attempts = attempts or settings.TRANSACTION_MAX_ATTEMPTS

    for attempt in range(1, max_attempts + 1):
        try:
            result = await operation()
            await db.flush()
            return result
        except (StaleDataError, IntegrityError, TransactionConflictError) as exc:
            await db.rollback()
            logger.warning(
                "Conflict on attempt %d/%d: %s", attempt, max_attempts, type(exc).__name__
            )
        except RewardsAPIError:
            raise
        except SQLAlchemyError as exc:
            await db.rollback()
            logger.exception("Store failure inside atomic unit")
            raise PersistenceError() from exc

    raise TransactionConflictError()
