"""
Accounts router: open an account and read it back.

Endpoints (the caller identity comes from the X-Caller-Identity header):
  POST /accounts     — Open the caller's account (zero balance)
  GET  /accounts/me  — The caller's account, including its balance

Each identity owns at most one account; opening a second one is a 409.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.database import get_db
from ledger_engine.dependencies import get_caller_identity, get_current_account_id
from ledger_engine.schemas.account import AccountCreateRequest, AccountResponse
from ledger_engine.services import account_store

router = APIRouter()


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open an account",
)
async def create_account(
    request: AccountCreateRequest,
    caller_identity: str = Depends(get_caller_identity),
    db: AsyncSession = Depends(get_db),
):
    """
    Open an account for the caller with a 0.00 balance.

    - **account_number**: optional; a random 10-digit number is generated
      when omitted
    """
    return await account_store.create_account(
        db=db,
        owner_ref=caller_identity,
        account_number=request.account_number,
    )


@router.get(
    "/me",
    response_model=AccountResponse,
    summary="Get your account",
)
async def get_my_account(
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """Return the caller's account and current balance."""
    return await account_store.get_account(db, account_id)
