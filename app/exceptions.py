"""
Custom exception classes and FastAPI exception handlers.

Why custom exceptions?
  FastAPI's default HTTPException works, but custom exceptions let the
  service layer raise domain-specific errors (like InsufficientBalanceError)
  without importing HTTP concepts. The handler layer then translates
  these into proper HTTP responses.

  This separation means:
    - Service code is testable without HTTP
    - Error responses are consistent across all endpoints
    - Adding new error types only needs a status code and an error_type

Exception hierarchy:
    RewardsAPIError (base)
    ├── InvalidRequestError            — input fails a business rule, nothing mutated
    │   └── WithdrawalNotAllowedError  — outside the window, no payout details, ...
    ├── InsufficientBalanceError       — debit would drive the balance negative
    ├── LimitExceededError             — purchase cap, gift-code cap, daily withdrawals
    ├── AlreadyRedeemedError           — gift code already used by this account
    ├── ExpiredError                   — gift code or time-limited offer is over
    ├── DuplicateReferenceError        — payment reference already approved
    ├── RequestAlreadyProcessedError   — reviewing a request that is not pending
    ├── NotFoundError                  — unknown account/code/request/item
    ├── TransactionConflictError       — optimistic-concurrency retries exhausted
    ├── PersistenceError               — the store failed, not retried
    ├── UnauthorizedAccessError
    ├── DuplicatePhoneError
    └── InvalidCredentialsError
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class RewardsAPIError(Exception):
    """Base exception for all Rewards API domain errors."""

    status_code: int = 400
    error_type: str = "error"

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)

    @property
    def extra(self) -> dict:
        """Additional fields merged into the JSON error body."""
        return {}


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class InvalidRequestError(RewardsAPIError):
    """Raised when input is well-formed but violates a business rule."""

    status_code = 400
    error_type = "validation_error"


class WithdrawalNotAllowedError(InvalidRequestError):
    """Raised when a withdrawal is requested outside the configured rules."""

    error_type = "withdrawal_not_allowed"


# ---------------------------------------------------------------------------
# Balance and limits
# ---------------------------------------------------------------------------

class InsufficientBalanceError(RewardsAPIError):
    """
    Raised when a debit would cause a negative balance.

    Attributes:
        account_id: The account that lacks sufficient balance.
        requested: The amount the caller tried to debit.
        available: The current balance of the account.
    """

    status_code = 422  # valid request, refused by a business rule
    error_type = "insufficient_balance"

    def __init__(self, account_id, requested: int, available: int):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient balance: requested {requested}, available {available}"
        )

    @property
    def extra(self) -> dict:
        return {"requested": self.requested, "available": self.available}


class LimitExceededError(RewardsAPIError):
    """Raised when a per-account or per-code cap would be exceeded."""

    status_code = 422
    error_type = "limit_exceeded"

    def __init__(self, detail: str, limit: int | None = None):
        self.limit = limit
        super().__init__(detail)

    @property
    def extra(self) -> dict:
        return {"limit": self.limit} if self.limit is not None else {}


class AlreadyRedeemedError(RewardsAPIError):
    """Raised when an account tries to redeem the same gift code twice."""

    status_code = 409
    error_type = "already_redeemed"

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Gift code {code} was already redeemed by this account")


class ExpiredError(RewardsAPIError):
    """Raised when a gift code or time-limited offer is no longer valid."""

    status_code = 410  # Gone
    error_type = "expired"


# ---------------------------------------------------------------------------
# Request review
# ---------------------------------------------------------------------------

class DuplicateReferenceError(RewardsAPIError):
    """Raised when approving a payment whose reference was already approved."""

    status_code = 409
    error_type = "duplicate_reference"

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(
            f"Payment reference {reference_number} has already been approved"
        )


class RequestAlreadyProcessedError(RewardsAPIError):
    """Raised when reviewing a request that is no longer pending."""

    status_code = 409
    error_type = "already_processed"

    def __init__(self, request_id, status: str):
        self.request_id = request_id
        super().__init__(f"Request {request_id} was already {status}")


# ---------------------------------------------------------------------------
# Lookup and store errors
# ---------------------------------------------------------------------------

class NotFoundError(RewardsAPIError):
    """Raised when a requested account, code, request or item does not exist."""

    status_code = 404
    error_type = "not_found"

    def __init__(self, resource: str, identifier):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class TransactionConflictError(RewardsAPIError):
    """
    Raised when concurrent writers keep invalidating our read of an account.

    The calling unit has already been retried; the client should try again.
    """

    status_code = 409
    error_type = "transaction_conflict"

    def __init__(self, detail: str = "The account was modified concurrently, please try again"):
        super().__init__(detail)


class PersistenceError(RewardsAPIError):
    """Raised when the database fails for reasons other than a conflict."""

    status_code = 503
    error_type = "persistence_error"

    def __init__(self, detail: str = "The data store is unavailable"):
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class UnauthorizedAccessError(RewardsAPIError):
    """Raised when a user attempts an operation their role does not allow."""

    status_code = 403
    error_type = "unauthorized_access"

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class DuplicatePhoneError(RewardsAPIError):
    """Raised when attempting to register with a phone number that's already in use."""

    status_code = 409
    error_type = "duplicate_phone"

    def __init__(self, phone: str):
        self.phone = phone
        super().__init__(f"Phone number {phone} is already registered")


class InvalidCredentialsError(RewardsAPIError):
    """Raised when login credentials are incorrect."""

    status_code = 401
    error_type = "invalid_credentials"

    def __init__(self):
        super().__init__("Invalid phone number or password")


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register the domain exception handler with the FastAPI application.

    Every RewardsAPIError maps to its class-level status code and a
    consistent JSON response format:
        {"detail": "error message", "error_type": "...", ...extra}

    This is called once during app startup in main.py.
    """

    @app.exception_handler(RewardsAPIError)
    async def rewards_error_handler(
        request: Request, exc: RewardsAPIError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s on %s %s: %s", exc.error_type, request.method, request.url.path, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type, **exc.extra},
        )
