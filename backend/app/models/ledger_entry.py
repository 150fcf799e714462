"""
Ledger Entry database model.

Immutable double-entry accounting records.
"""

from decimal import Decimal
from sqlalchemy import Column, Integer, Numeric, ForeignKey, Enum, String, UniqueConstraint
from backend.app.db.session import Base
from backend.app.models.ledger_enums import EntrySide


class LedgerEntry(Base):
    """
    Ledger Entry model.
    
    One line of a transaction. Amount is always positive; the side carries the sign.
    NO updates or deletions allowed.
    """
    __tablename__ = "ledger_entries"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Linkage
    transaction_id = Column(Integer, ForeignKey('ledger_transactions.id'), nullable=False, index=True)
    account_id = Column(Integer, ForeignKey('accounts.id'), nullable=False, index=True)
    line_number = Column(Integer, nullable=False)
    
    # Entry details
    side = Column(Enum(EntrySide), nullable=False)  # DEBIT or CREDIT
    
    # Financials
    amount = Column(Numeric(15, 2), nullable=False)
    description = Column(String(255), nullable=True)
    
    __table_args__ = (
        UniqueConstraint('transaction_id', 'line_number', name='uq_ledger_entries_line'),
    )
    
    @property
    def signed_amount(self) -> Decimal:
        """Debits positive, credits negative."""
        return self.amount if self.side == EntrySide.DEBIT else -self.amount
    
    def __repr__(self):
        return f"<LedgerEntry(id={self.id}, side='{self.side.value}', amount={self.amount})>"
