"""
Payment database model.

Each recorded payment owns exactly one ledger transaction (cash receipt).
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, DateTime, Enum, UniqueConstraint
from backend.app.db.session import Base
from backend.app.models.invoice_enums import PaymentMethod


class Payment(Base):
    """
    Payment model.
    
    (invoice_id, reference) is unique so a retried payment is recognised
    instead of posted twice.
    """
    __tablename__ = "payments"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id'), nullable=False, index=True)
    reference = Column(String(100), nullable=False)
    
    amount = Column(Numeric(15, 2), nullable=False)
    method = Column(Enum(PaymentMethod), default=PaymentMethod.CASH, nullable=False)
    
    transaction_id = Column(Integer, ForeignKey('ledger_transactions.id'), nullable=True, unique=True)
    
    received_at = Column(DateTime(timezone=True), nullable=False)
    
    # Set when the payment is voided; its ledger transaction is then REVERSED
    voided_at = Column(DateTime(timezone=True), nullable=True)
    void_reason = Column(String(255), nullable=True)
    
    __table_args__ = (
        UniqueConstraint('invoice_id', 'reference', name='uq_payments_invoice_reference'),
    )
    
    def __repr__(self):
        return f"<Payment(id={self.id}, invoice_id={self.invoice_id}, amount={self.amount})>"
