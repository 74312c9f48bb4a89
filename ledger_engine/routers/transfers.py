"""
Transfers router: atomic money transfers between accounts.

Endpoints:
  POST /transfers                      — Send money from your account to another account number
  GET  /transfers/{transfer_group_id}  — One transfer you sent or received

A transfer writes two entries in one transaction: TRANSFER_SENT on your
account and TRANSFER_RECEIVED on the recipient's. The response is your
side; both legs share a transfer_group_id.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from ledger_engine.database import get_db
from ledger_engine.dependencies import get_current_account_id, get_fund_movement_engine
from ledger_engine.schemas.ledger_entry import (
    LedgerEntryResponse,
    TransferRequest,
    TransferSummaryResponse,
)
from ledger_engine.services import query_service
from ledger_engine.services.fund_movement import FundMovementEngine

router = APIRouter()


@router.post(
    "",
    response_model=LedgerEntryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer money to another account",
)
async def create_transfer(
    request: TransferRequest,
    account_id: uuid.UUID = Depends(get_current_account_id),
    engine: FundMovementEngine = Depends(get_fund_movement_engine),
):
    """
    Transfer money to the account with the given number.

    - **recipient_account_number**: any existing account except your own
    - **amount**: positive decimal with at most two places, e.g. "100.00"

    Rejected with 422 on insufficient funds or a transfer to yourself, and
    404 if the recipient number does not exist. Nothing is written on
    rejection.
    """
    return await engine.transfer(
        account_id,
        request.recipient_account_number,
        request.amount,
        request.description,
    )


@router.get(
    "/{transfer_group_id}",
    response_model=TransferSummaryResponse,
    summary="Get a transfer",
)
async def get_transfer(
    transfer_group_id: uuid.UUID,
    account_id: uuid.UUID = Depends(get_current_account_id),
    db: AsyncSession = Depends(get_db),
):
    """
    Get a transfer by its group id, with your own leg attached.

    404 if no transfer has this id, 403 if you are on neither side.
    """
    return await query_service.get_transfer(db, account_id, transfer_group_id)
