"""
Pydantic schemas for money movement and ledger history endpoints.

Amounts travel as decimal strings (e.g. "1200.00") so no precision is lost
to JSON floats.

Entry responses are a discriminated union on `kind`: deposits and
withdrawals have no counterparty fields at all, and transfer legs always
have them, instead of one shape with nullable fields for every kind.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from ledger_engine.models.ledger_entry import EntryKind, EntryStatus


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class DepositRequest(BaseModel):
    """Request body for POST /transactions/deposit."""
    amount: Decimal = Field(description="Amount to add, positive, at most two decimals")
    description: str | None = Field(None, max_length=255)


class WithdrawalRequest(BaseModel):
    """Request body for POST /transactions/withdraw."""
    amount: Decimal = Field(description="Amount to take out, positive, at most two decimals")
    description: str | None = Field(None, max_length=255)


class TransferRequest(BaseModel):
    """Request body for POST /transfers."""
    recipient_account_number: str = Field(min_length=1, max_length=20)
    amount: Decimal = Field(description="Amount to send, positive, at most two decimals")
    description: str | None = Field(None, max_length=255)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class _EntryBase(BaseModel):
    id: int
    account_id: uuid.UUID
    amount: Decimal
    description: str | None
    balance_after: Decimal
    occurred_at: datetime
    status: EntryStatus

    model_config = {"from_attributes": True}


class DepositEntryResponse(_EntryBase):
    kind: Literal[EntryKind.DEPOSIT]


class WithdrawalEntryResponse(_EntryBase):
    kind: Literal[EntryKind.WITHDRAWAL]


class TransferEntryResponse(_EntryBase):
    """One leg of a transfer; both legs share transfer_group_id."""
    kind: Literal[EntryKind.TRANSFER_SENT, EntryKind.TRANSFER_RECEIVED]
    sender_account_number: str
    counterparty_account_number: str
    transfer_group_id: uuid.UUID


LedgerEntryResponse = Annotated[
    Union[DepositEntryResponse, WithdrawalEntryResponse, TransferEntryResponse],
    Field(discriminator="kind"),
]


class EntryPageResponse(BaseModel):
    """One page of history, newest first."""
    items: list[LedgerEntryResponse]
    page: int
    page_size: int
    total: int
    total_pages: int


class TransferSummaryResponse(BaseModel):
    """
    One transfer seen from one side.

    The shared fields are identical on both legs; `entry` is the caller's
    own leg, so the other account's balance is never exposed.
    """
    transfer_group_id: uuid.UUID
    sender_account_number: str
    counterparty_account_number: str
    amount: Decimal
    description: str | None
    occurred_at: datetime
    entry: TransferEntryResponse
