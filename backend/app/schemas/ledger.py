"""
Ledger Schemas.

Money is exposed as Decimal, serialized as a string in JSON.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.domain.ledger.events import EntryInput
from backend.app.models.ledger_enums import AccountType, EntrySide, TransactionKind, TransactionStatus


class AccountCreate(BaseModel):
    """Schema for creating an account."""
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=255)
    account_type: AccountType
    normal_side: Optional[EntrySide] = None


class AccountResponse(BaseModel):
    """Schema for displaying an account."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    name: str
    account_type: AccountType
    normal_side: EntrySide
    is_active: bool
    created_at: datetime


class BalanceResponse(BaseModel):
    """Derived balance of an account."""
    account_id: int
    code: str
    normal_side: EntrySide
    balance: Decimal
    as_of: Optional[datetime] = None


class JournalEntryCreate(BaseModel):
    """Manual journal voucher."""
    reference: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=255)
    lines: List[EntryInput]


class ReversalCreate(BaseModel):
    description: Optional[str] = Field(None, max_length=255)


class EntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_number: int
    account_id: int
    side: EntrySide
    amount: Decimal
    signed_amount: Decimal
    description: Optional[str]


class TransactionResponse(BaseModel):
    """Schema for displaying a ledger transaction with its entries."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: TransactionKind
    status: TransactionStatus
    reference: Optional[str]
    description: Optional[str]
    reverses_transaction_id: Optional[int]
    posted_at: datetime
    entries: List[EntryResponse]
