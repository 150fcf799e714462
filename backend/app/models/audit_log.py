"""
Audit Log Database Model.

Tracks ledger postings and invoice transitions for compliance.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from backend.app.db.session import Base


class AuditLog(Base):
    """
    Audit log model for tracking ledger and invoice actions.
    
    Events logged:
    - ACCOUNT_CREATED / ACCOUNT_DEACTIVATED
    - TRANSACTION_POSTED / TRANSACTION_REVERSED
    - INVOICE_CREATED / INVOICE_ISSUED / INVOICE_VOIDED / INVOICE_RECONCILED
    - PAYMENT_RECORDED
    """
    __tablename__ = "audit_logs"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    
    # Who performed the action (None for system actions)
    actor = Column(String(100), nullable=True)
    
    # What action was performed
    action = Column(String(100), nullable=False, index=True)
    
    # What it was performed on
    entity = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=True, index=True)
    
    # Additional context (JSON for flexibility)
    meta_data = Column(JSON, nullable=True)
    
    # Timestamp
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
    
    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity={self.entity}:{self.entity_id})>"
