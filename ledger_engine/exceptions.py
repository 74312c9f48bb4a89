"""
Custom exception classes and FastAPI exception handlers.

The stores and the fund-movement engine raise these domain errors without
importing any HTTP concepts; the handler layer translates them into
responses. Every error carries:

  - detail: a human-readable message
  - error_type: a stable machine-readable kind
  - status_code: the HTTP status the request layer should answer with

Exception hierarchy:
    LedgerError (base)
    ├── AccountNotFoundError     — account id / number / owner unknown
    ├── EntryNotFoundError       — ledger entry id unknown
    ├── TransferNotFoundError    — transfer group id unknown
    ├── DuplicateAccountError    — account number or owner already taken
    ├── InvalidAmountError       — amount not positive or not scale 2
    ├── InsufficientFundsError   — withdrawal/transfer would overdraw
    ├── BalanceLimitError        — credit would exceed the largest balance
    ├── SelfTransferError        — sender and recipient are the same account
    ├── AccessDeniedError        — entry belongs to another account
    ├── UnauthenticatedError     — no caller identity presented
    ├── UnauthorizedError        — identity has no linked account
    └── StoreUnavailableError    — store timeout, outage, or retries exhausted
        └── BalanceConflictError — a balance compare-and-swap lost a race
"""

import uuid
from decimal import Decimal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class LedgerError(Exception):
    """Base exception for all ledger domain errors."""

    error_type = "ledger_error"
    status_code = 400

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class AccountNotFoundError(LedgerError):
    """Raised when a referenced account does not exist."""

    error_type = "account_not_found"
    status_code = 404

    def __init__(self, reference: uuid.UUID | str):
        self.reference = reference
        super().__init__(f"Account {reference} not found")


class EntryNotFoundError(LedgerError):
    """Raised when a ledger entry id does not exist."""

    error_type = "entry_not_found"
    status_code = 404

    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(f"Ledger entry {entry_id} not found")


class TransferNotFoundError(LedgerError):
    """Raised when no entries carry a transfer group id."""

    error_type = "transfer_not_found"
    status_code = 404

    def __init__(self, transfer_group_id: uuid.UUID):
        self.transfer_group_id = transfer_group_id
        super().__init__(f"Transfer {transfer_group_id} not found")


class DuplicateAccountError(LedgerError):
    """Raised when an account number or owner is already registered."""

    error_type = "duplicate_account"
    status_code = 409


class InvalidAmountError(LedgerError):
    """Raised when a money-movement amount is not a positive scale-2 decimal."""

    error_type = "invalid_amount"
    status_code = 422

    def __init__(self, amount):
        self.amount = amount
        super().__init__(
            f"Invalid amount {amount}: must be positive, in range, with at most two decimal places"
        )


class InsufficientFundsError(LedgerError):
    """
    Raised when a withdrawal or transfer would drive a balance negative.

    Attributes:
        account_id: The account that lacks sufficient funds.
        requested: The amount the caller tried to move.
        available: The balance at the time of the attempt.
    """

    error_type = "insufficient_funds"
    status_code = 422

    def __init__(self, account_id: uuid.UUID, requested: Decimal, available: Decimal):
        self.account_id = account_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient funds: requested {requested}, available {available}"
        )


class BalanceLimitError(LedgerError):
    """Raised when a credit would push a balance past the largest storable value."""

    error_type = "balance_limit_exceeded"
    status_code = 422

    def __init__(self, account_id: uuid.UUID, limit: Decimal):
        self.account_id = account_id
        self.limit = limit
        super().__init__(f"Balance of account {account_id} cannot exceed {limit}")


class SelfTransferError(LedgerError):
    """Raised when a transfer names the sender's own account number."""

    error_type = "self_transfer"
    status_code = 422

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Cannot transfer to your own account {account_number}")


class AccessDeniedError(LedgerError):
    """Raised when a caller reads an entry owned by another account."""

    error_type = "access_denied"
    status_code = 403

    def __init__(self, detail: str = "You do not have access to this resource"):
        super().__init__(detail)


class UnauthenticatedError(LedgerError):
    """Raised when a request carries no caller identity."""

    error_type = "unauthenticated"
    status_code = 401

    def __init__(self):
        super().__init__("No caller identity presented")


class UnauthorizedError(LedgerError):
    """Raised when a caller identity has no linked account."""

    error_type = "unauthorized"
    status_code = 403

    def __init__(self, caller_identity: str):
        self.caller_identity = caller_identity
        super().__init__(f"Identity {caller_identity} has no linked account")


class StoreUnavailableError(LedgerError):
    """Raised when the store times out, fails, or contention retries run out."""

    error_type = "store_unavailable"
    status_code = 503

    def __init__(self, detail: str = "The ledger store is unavailable, try again later"):
        super().__init__(detail)


class BalanceConflictError(StoreUnavailableError):
    """
    Raised when a balance compare-and-swap matches no row.

    Another unit of work changed the account after it was read. The engine
    catches this and retries; callers only ever see it as the parent class
    once the retry budget is spent.
    """

    error_type = "balance_conflict"

    def __init__(self, account_id: uuid.UUID, expected_version: int):
        self.account_id = account_id
        self.expected_version = expected_version
        super().__init__(
            f"Account {account_id} changed concurrently (expected version {expected_version})"
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Every domain error becomes {"detail": ..., "error_type": ...} with the
    status code declared on its class. Called once from main.py.
    """

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "detail": exc.detail,
                "error_type": exc.error_type,
                "requested": str(exc.requested),
                "available": str(exc.available),
            },
        )

    @app.exception_handler(UnauthenticatedError)
    async def unauthenticated_handler(
        request: Request, exc: UnauthenticatedError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type},
            headers={"WWW-Authenticate": "X-Caller-Identity"},
        )

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(
        request: Request, exc: LedgerError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error_type": exc.error_type},
        )

    @app.exception_handler(OperationalError)
    async def store_operational_error_handler(
        request: Request, exc: OperationalError
    ) -> JSONResponse:
        # Read paths hit the store directly; the engine translates its own
        return JSONResponse(
            status_code=StoreUnavailableError.status_code,
            content={
                "detail": StoreUnavailableError().detail,
                "error_type": StoreUnavailableError.error_type,
            },
        )
