"""
Invoice database model.

Owned by the invoice lifecycle manager. References ledger transactions by id only.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, ForeignKey, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.invoice_enums import InvoiceStatus


class Invoice(Base):
    """
    Invoice model.
    
    Follows a strict workflow: DRAFT -> ISSUED -> PARTIALLY_PAID -> PAID,
    with VOIDED reachable from DRAFT or ISSUED (no active payments).
    amount_paid is a cache of the posted payment transactions.
    """
    __tablename__ = "invoices"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    invoice_number = Column(String(50), unique=True, nullable=False, index=True)
    
    # Parties
    customer_id = Column(Integer, ForeignKey('customers.id'), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey('bookings.id'), nullable=True, index=True)
    
    # Status
    status = Column(Enum(InvoiceStatus), default=InvoiceStatus.DRAFT, nullable=False, index=True)
    
    # Dates
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    issued_at = Column(DateTime(timezone=True), nullable=True)
    voided_at = Column(DateTime(timezone=True), nullable=True)
    void_reason = Column(String(255), nullable=True)
    
    # Financials
    subtotal = Column(Numeric(15, 2), nullable=False)
    tax_total = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    total_amount = Column(Numeric(15, 2), nullable=False)
    amount_paid = Column(Numeric(15, 2), nullable=False, default=Decimal("0.00"))
    
    # Receivable recognition (weak reference)
    issue_transaction_id = Column(Integer, ForeignKey('ledger_transactions.id'), nullable=True)
    
    notes = Column(Text, nullable=True)
    
    # Optimistic concurrency counter
    version = Column(Integer, nullable=False)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    line_items = relationship(
        "InvoiceLineItem",
        order_by="InvoiceLineItem.line_number",
        lazy="selectin",
    )
    payments = relationship(
        "Payment",
        order_by="Payment.id",
        lazy="selectin",
    )
    
    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}
    
    @property
    def outstanding_amount(self) -> Decimal:
        return self.total_amount - self.amount_paid
    
    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_number}', status='{self.status.value}', total={self.total_amount})>"
