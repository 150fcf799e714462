"""
Database seeding script for the default chart of accounts.

Creates the accounts the posting rules map to (cash, receivable, tax
payable, revenue) plus a few common ones. Safe to run repeatedly.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from backend.app.core.config import settings
from backend.app.core.observability import configure_logging, logger
from backend.app.db.session import AsyncSessionLocal, engine, Base
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.core.exceptions import DuplicateCodeError
from backend.app.models.ledger_enums import AccountType
import backend.app.main  # noqa: F401  registers all models


DEFAULT_CHART = [
    (settings.cash_account_code, "Cash", AccountType.ASSET),
    (settings.receivable_account_code, "Accounts Receivable", AccountType.ASSET),
    (settings.tax_payable_account_code, "VAT Payable", AccountType.LIABILITY),
    ("3000", "Owner's Capital", AccountType.EQUITY),
    (settings.revenue_account_code, "Rental Revenue", AccountType.REVENUE),
    ("5000", "Vehicle Maintenance Expense", AccountType.EXPENSE),
]


async def seed_accounts():
    """
    Seed the default chart of accounts.

    Existing codes are left untouched.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    created = 0
    async with AsyncSessionLocal() as db:
        for code, name, account_type in DEFAULT_CHART:
            try:
                await LedgerStore.create_account(db, code=code, name=name, account_type=account_type, actor="seed")
                created += 1
                logger.info("Created account %s %s", code, name)
            except DuplicateCodeError:
                logger.info("Account %s already exists, skipping", code)
        await db.commit()

    logger.info("Chart of accounts seeding completed (%d created)", created)


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_accounts())
