"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Logging — root logger level from LOG_LEVEL
  2. Lifespan manager — handles startup/shutdown (DB table creation, cleanup)
  3. Middleware — request logging and CORS
  4. Exception handlers — maps domain errors to HTTP responses
  5. Router registration — mounts all API endpoint groups

Running locally:
    uvicorn app.main:app --reload

The --reload flag watches for file changes and restarts automatically,
which is ideal for development but should not be used in production.
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.database import engine, Base
from app.exceptions import register_exception_handlers
from app.middleware import RequestLogMiddleware
from app.routers import accounts, admin, auth, catalog, gift_codes, payments, withdrawals

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Creates all database tables if they don't exist. This is a convenience
      for development — in production, you'd use migrations so schema
      changes are versioned and reversible.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    if settings.DATABASE_URL.startswith("sqlite") and ":///./" in settings.DATABASE_URL:
        os.makedirs(os.path.dirname(settings.DATABASE_URL.split(":///", 1)[1]), exist_ok=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)
    yield
    # --- Shutdown ---
    await engine.dispose()


# Create the FastAPI application instance
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Rewards platform API: balance ledger, energy plant yields, "
                "recharges, withdrawals and gift codes",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

app.add_middleware(RequestLogMiddleware)

# CORS: Allow specified frontend origins to make requests.
# In production, lock this down to your actual frontend domain(s).
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(accounts.router, prefix="/accounts", tags=["Accounts"])
app.include_router(catalog.router, prefix="/catalog", tags=["Catalog"])
app.include_router(gift_codes.router, prefix="/gift-codes", tags=["Gift codes"])
app.include_router(payments.router, prefix="/payments", tags=["Payments"])
app.include_router(withdrawals.router, prefix="/withdrawals", tags=["Withdrawals"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for load balancers and uptime checks.

    Returns a simple JSON response indicating the service is running.
    """
    return {"status": "ok", "version": settings.APP_VERSION}
