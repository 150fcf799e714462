"""
Invoice Line Item database model.
"""

from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, UniqueConstraint
from backend.app.db.session import Base


class InvoiceLineItem(Base):
    """
    Invoice Line Item model.
    
    amount = quantity * unit_price; tax_amount = amount * tax_rate / 100.
    Both computed once at invoice creation.
    """
    __tablename__ = "invoice_line_items"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    invoice_id = Column(Integer, ForeignKey('invoices.id'), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    
    description = Column(String(255), nullable=False)
    quantity = Column(Numeric(15, 2), nullable=False)
    unit_price = Column(Numeric(15, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=True)  # Percentage, e.g. 5 for 5%
    
    amount = Column(Numeric(15, 2), nullable=False)
    tax_amount = Column(Numeric(15, 2), nullable=False)
    
    __table_args__ = (
        UniqueConstraint('invoice_id', 'line_number', name='uq_invoice_line_items_line'),
    )
    
    def __repr__(self):
        return f"<InvoiceLineItem(invoice_id={self.invoice_id}, line={self.line_number}, amount={self.amount})>"
