"""
Ledger enumerations.
"""

import enum


class AccountType(str, enum.Enum):
    """Account classification in the chart of accounts."""
    ASSET = "ASSET"
    LIABILITY = "LIABILITY"
    EQUITY = "EQUITY"
    REVENUE = "REVENUE"
    EXPENSE = "EXPENSE"


class EntrySide(str, enum.Enum):
    """Ledger entry side enumeration."""
    DEBIT = "DEBIT"
    CREDIT = "CREDIT"

    @property
    def opposite(self) -> "EntrySide":
        return EntrySide.CREDIT if self is EntrySide.DEBIT else EntrySide.DEBIT


# Normal balance side per account type
DEFAULT_NORMAL_SIDE = {
    AccountType.ASSET: EntrySide.DEBIT,
    AccountType.EXPENSE: EntrySide.DEBIT,
    AccountType.LIABILITY: EntrySide.CREDIT,
    AccountType.EQUITY: EntrySide.CREDIT,
    AccountType.REVENUE: EntrySide.CREDIT,
}


class TransactionStatus(str, enum.Enum):
    """Transaction status enumeration."""
    POSTED = "POSTED"  # Visible and counted
    REVERSED = "REVERSED"  # A linked reversal has been posted; still counted


class TransactionKind(str, enum.Enum):
    """Business origin of a transaction."""
    JOURNAL = "JOURNAL"
    INVOICE = "INVOICE"
    PAYMENT = "PAYMENT"
    REVERSAL = "REVERSAL"
