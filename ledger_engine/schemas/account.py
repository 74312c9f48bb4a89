"""
Pydantic schemas for Account endpoints.

The owner is always the caller identity, so account creation only takes
an optional account number.
"""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    account_number: str | None = Field(
        default=None,
        min_length=1,
        max_length=20,
        description="Human-facing account number; generated when omitted",
    )


class AccountResponse(BaseModel):
    """Public representation of an account."""
    id: uuid.UUID
    account_number: str
    owner_ref: str
    balance: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}
