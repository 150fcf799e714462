"""
Invoice enumerations.
"""

import enum


class InvoiceStatus(str, enum.Enum):
    """
    Invoice status enumeration.

    DRAFT -> ISSUED -> PARTIALLY_PAID -> PAID
    DRAFT/ISSUED -> VOIDED (only with zero payments)
    """
    DRAFT = "DRAFT"
    ISSUED = "ISSUED"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    VOIDED = "VOIDED"


class PaymentMethod(str, enum.Enum):
    """Payment method enumeration."""
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    CREDIT_CARD = "CREDIT_CARD"
    OTHER = "OTHER"
