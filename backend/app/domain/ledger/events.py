"""
Ledger Events.

Closed set of business events the posting engine accepts. Each event
carries a deterministic reference used as the idempotency key.
"""

from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field

from backend.app.models.ledger_enums import EntrySide


class EventKind:
    """Event discriminator values."""
    INVOICE_ISSUED = "invoice-issued"
    PAYMENT_RECEIVED = "payment-received"
    JOURNAL_VOUCHER = "journal-voucher"


class EntryInput(BaseModel):
    """One requested ledger line."""
    model_config = ConfigDict(frozen=True)

    account_id: int
    side: EntrySide
    amount: Decimal
    description: Optional[str] = Field(None, max_length=255)


class InvoiceIssued(BaseModel):
    """Receivable recognition for an issued invoice."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["invoice-issued"] = EventKind.INVOICE_ISSUED
    invoice_id: int
    invoice_number: str
    subtotal: Decimal
    tax_total: Decimal = Decimal("0.00")
    total: Decimal

    @property
    def reference(self) -> str:
        return f"{self.kind}:{self.invoice_id}"

    @property
    def description(self) -> str:
        return f"Invoice {self.invoice_number} issued"


class PaymentReceived(BaseModel):
    """Cash receipt against an invoice."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["payment-received"] = EventKind.PAYMENT_RECEIVED
    invoice_id: int
    invoice_number: str
    payment_reference: str
    amount: Decimal

    @property
    def reference(self) -> str:
        return f"{self.kind}:{self.invoice_id}:{self.payment_reference}"

    @property
    def description(self) -> str:
        return f"Payment {self.payment_reference} for invoice {self.invoice_number}"


class JournalVoucher(BaseModel):
    """Manual journal entry with explicit lines."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["journal-voucher"] = EventKind.JOURNAL_VOUCHER
    voucher_reference: str = Field(..., min_length=1, max_length=200)
    memo: Optional[str] = Field(None, max_length=255)
    lines: List[EntryInput]

    @property
    def reference(self) -> str:
        return f"{self.kind}:{self.voucher_reference}"

    @property
    def description(self) -> str:
        return self.memo or f"Journal voucher {self.voucher_reference}"


LedgerEvent = Annotated[
    Union[InvoiceIssued, PaymentReceived, JournalVoucher],
    Field(discriminator="kind"),
]
