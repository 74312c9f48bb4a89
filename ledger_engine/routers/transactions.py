"""
Transactions router: deposits, withdrawals and ledger history.

Member endpoints (scoped to the caller's account):
  POST /transactions/deposit            — Add money
  POST /transactions/withdraw           — Take money out
  GET  /transactions                    — One page of history
  GET  /transactions/all                — Full history
  GET  /transactions/range              — History between two timestamps
  GET  /transactions/by-account-number  — Entries naming your number on either side
  GET  /transactions/{entry_id}         — A single entry you own

Static paths are declared before /{entry_id} so they are matched first.
"""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.config import settings
from ledger_engine.database import get_db
from ledger_engine.dependencies import get_current_account_id, get_fund_movement_engine
from ledger_engine.schemas.ledger_entry import (
    DepositRequest,
    EntryPageResponse,
    LedgerEntryResponse,
    WithdrawalRequest,
)
from ledger_engine.services import account_store, query_service
from ledger_engine.services.fund_movement import FundMovementEngine

router = APIRouter()


@router.post(
    "/deposit",
    response_model=LedgerEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Deposit money",
)
async def deposit(
    request: DepositRequest,
    account_id: uuid.UUID = Depends(get_current_account_id),
    engine: FundMovementEngine = Depends(get_fund_movement_engine),
):
    """
    Add money to your account.

    Returns the DEPOSIT entry; `balance_after` is the new balance.
    """
    return await engine.deposit(account_id, request.amount, request.description)


@router.post(
    "/withdraw",
    response_model=LedgerEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Withdraw money",
)
async def withdraw(
    request: WithdrawalRequest,
    account_id: uuid.UUID = Depends(get_current_account_id),
    engine: FundMovementEngine = Depends(get_fund_movement_engine),
):
    """
    Take money out of your account.

    Rejected with 422 if the balance is lower than the amount; nothing is
    written in that case.
    """
    return await engine.withdraw(account_id, request.amount, request.description)


@router.get(
    "",
    response_model=EntryPageResponse,
    summary="List history, one page at a time",
)
async def list_history_page(
    page: int = Query(0, ge=0, le=settings.MAX_PAGE, description="Zero-based page number"),
    size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """Your entries, newest first, windowed by page and size."""
    return await query_service.get_history_page(db, account_id, page, size)


@router.get(
    "/all",
    response_model=list[LedgerEntryResponse],
    summary="List full history",
)
async def list_history(
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """Every entry on your account, newest first."""
    return await query_service.get_history(db, account_id)


@router.get(
    "/range",
    response_model=list[LedgerEntryResponse],
    summary="List history in a date range",
)
async def list_history_between(
    start: datetime = Query(..., description="Inclusive lower bound"),
    end: datetime = Query(..., description="Inclusive upper bound"),
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """Your entries with start <= occurred_at <= end, newest first."""
    return await query_service.get_history_between(db, account_id, start, end)


@router.get(
    "/by-account-number",
    response_model=list[LedgerEntryResponse],
    summary="List transfers naming your account number",
)
async def list_by_account_number(
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Your side of every transfer where your account number is the sender or
    the counterparty, newest first.
    """
    account = await account_store.get_account(db, account_id)
    return await query_service.get_by_account_number(db, account_id, account.account_number)


@router.get(
    "/{entry_id}",
    response_model=LedgerEntryResponse,
    summary="Get a single entry",
)
async def get_entry(
    entry_id: int,
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """Get one of your entries; 403 if it belongs to another account."""
    return await query_service.get_entry(db, account_id, entry_id)
