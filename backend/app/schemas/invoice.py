"""
Invoice Schemas.
"""

from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, List
from backend.app.models.invoice_enums import InvoiceStatus, PaymentMethod


class InvoiceLineItemCreate(BaseModel):
    """One billable line."""
    description: str = Field(..., min_length=1, max_length=255)
    quantity: Decimal = Field(Decimal("1"), gt=0)
    unit_price: Decimal = Field(..., gt=0)
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)


class InvoiceCreate(BaseModel):
    """Schema for creating a draft invoice."""
    customer_id: int
    booking_id: Optional[int] = None
    invoice_date: Optional[date] = None
    due_date: date
    notes: Optional[str] = None
    line_items: List[InvoiceLineItemCreate]


class PaymentCreate(BaseModel):
    """Schema for recording a payment."""
    amount: Decimal = Field(..., gt=0)
    method: PaymentMethod = PaymentMethod.CASH
    reference: Optional[str] = Field(None, min_length=1, max_length=100)
    expected_version: Optional[int] = None


class InvoiceVoid(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class PaymentVoid(BaseModel):
    reason: Optional[str] = Field(None, max_length=255)


class InvoiceLineItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    line_number: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_rate: Optional[Decimal]
    amount: Decimal
    tax_amount: Decimal


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_id: int
    reference: str
    amount: Decimal
    method: PaymentMethod
    transaction_id: Optional[int]
    received_at: datetime
    voided_at: Optional[datetime] = None
    void_reason: Optional[str] = None


class InvoiceResponse(BaseModel):
    """Schema for displaying an invoice."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    invoice_number: str
    customer_id: int
    booking_id: Optional[int]
    status: InvoiceStatus
    invoice_date: date
    due_date: date
    issued_at: Optional[datetime]
    voided_at: Optional[datetime]
    void_reason: Optional[str]
    subtotal: Decimal
    tax_total: Decimal
    total_amount: Decimal
    amount_paid: Decimal
    outstanding_amount: Decimal
    issue_transaction_id: Optional[int]
    version: int
    line_items: List[InvoiceLineItemResponse]
    payments: List[PaymentResponse]


class PaymentRecordedResponse(BaseModel):
    payment: PaymentResponse
    invoice: InvoiceResponse


class ReconciliationResponse(BaseModel):
    invoice_id: int
    cached_amount_paid: Decimal
    ledger_amount_paid: Decimal
    consistent: bool
    repaired: bool
