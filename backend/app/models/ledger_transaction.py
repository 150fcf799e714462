"""
Ledger Transaction database model.

Header of a balanced journal entry. Entries live in ledger_entries.
"""

from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from backend.app.db.session import Base
from backend.app.models.ledger_enums import TransactionStatus, TransactionKind


class LedgerTransaction(Base):
    """
    Ledger Transaction model.
    
    Append-only. The only column that ever changes after insert is status
    (POSTED -> REVERSED), set by the ledger store when a reversal is posted.
    """
    __tablename__ = "ledger_transactions"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    kind = Column(Enum(TransactionKind), nullable=False)
    status = Column(Enum(TransactionStatus), default=TransactionStatus.POSTED, nullable=False, index=True)
    
    # Idempotency key of the business event that produced this transaction
    reference = Column(String(255), unique=True, nullable=True, index=True)
    description = Column(String(255), nullable=True)
    
    # Set on reversal transactions only
    reverses_transaction_id = Column(
        Integer, ForeignKey('ledger_transactions.id'), unique=True, nullable=True, index=True
    )
    
    posted_at = Column(DateTime(timezone=True), nullable=False, index=True)
    
    entries = relationship(
        "LedgerEntry",
        order_by="LedgerEntry.line_number",
        lazy="selectin",
    )
    
    def __repr__(self):
        return f"<LedgerTransaction(id={self.id}, kind='{self.kind.value}', status='{self.status.value}')>"
