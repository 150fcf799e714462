"""
Account database model.

Chart of accounts entry. Type and normal balance side never change.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum
from sqlalchemy.orm import validates
from sqlalchemy.sql import func
from backend.app.db.session import Base
from backend.app.models.ledger_enums import AccountType, EntrySide


class Account(Base):
    """
    Account model.
    
    Accounts are never deleted once created; they can only be deactivated.
    Balances are not stored here; they are derived from ledger entries.
    """
    __tablename__ = "accounts"
    
    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    code = Column(String(20), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    
    # Fixed at creation
    account_type = Column(Enum(AccountType), nullable=False)
    normal_side = Column(Enum(EntrySide), nullable=False)
    
    is_active = Column(Boolean, default=True, nullable=False)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    __mapper_args__ = {"eager_defaults": True}
    
    @validates("account_type", "normal_side")
    def _freeze_classification(self, key, value):
        current = getattr(self, key)
        if current is not None and current != value:
            raise ValueError(f"Account {key} is fixed at creation")
        return value
    
    def __repr__(self):
        return f"<Account(id={self.id}, code='{self.code}', type='{self.account_type.value}')>"
