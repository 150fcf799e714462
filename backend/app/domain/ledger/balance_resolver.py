"""
Balance Resolver (Domain Logic).

Balances are never stored. They are folded from ledger entries:

    DEBIT-normal account:  sum(debits) - sum(credits)
    CREDIT-normal account: sum(credits) - sum(debits)

Every transaction counts, including reversed ones and their reversals, so
reversing a transaction returns the balance to its prior value. Each fold
is a single SELECT, so a reader sees either all or none of a transaction's
entries.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import NamedTuple, Optional

from sqlalchemy import select, case, func
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.domain.ledger.money import to_money
from backend.app.models.account import Account
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.ledger_enums import EntrySide
from backend.app.models.ledger_transaction import LedgerTransaction
from backend.app.services.cache import BalanceCache

logger = logging.getLogger("fleet_ledger.balance")


class AccountFold(NamedTuple):
    debits: Decimal
    credits: Decimal
    entry_count: int
    last_transaction_id: Optional[int]


class BalanceResolver:

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        account_id: int,
        as_of: Optional[datetime] = None,
        cache: Optional[BalanceCache] = None,
    ) -> Decimal:
        """
        Signed balance of an account, current or as of a point in time.

        Args:
            db: Database session
            account_id: Account to resolve
            as_of: Include only transactions posted at or before this time
            cache: Optional balance cache; ignored for historical queries

        Raises:
            NotFoundError: unknown account
        """
        account = await LedgerStore.get_account(db, account_id)

        if as_of is None and cache is not None:
            cached = await cache.get(account_id)
            if cached is not None:
                fingerprint = await BalanceResolver._fingerprint(db, account_id)
                if (cached["entry_count"], cached["last_transaction_id"]) == fingerprint:
                    return cached["balance"]
                logger.debug("Stale balance cache entry", extra={"account_id": account_id})

        fold = await BalanceResolver._fold(db, account_id, as_of)
        balance = BalanceResolver._apply_normal_side(account, fold)

        if as_of is None and cache is not None:
            await cache.set(account_id, balance, fold.entry_count, fold.last_transaction_id)

        return balance

    @staticmethod
    async def verify_cache(db: AsyncSession, account_id: int, cache: BalanceCache) -> bool:
        """
        Compare the cached balance against a full fold of the log.

        A missing entry counts as consistent. A mismatching entry is dropped.
        """
        cached = await cache.get(account_id)
        if cached is None:
            return True

        account = await LedgerStore.get_account(db, account_id)
        fold = await BalanceResolver._fold(db, account_id)
        expected = BalanceResolver._apply_normal_side(account, fold)

        consistent = (
            cached["balance"] == expected
            and cached["entry_count"] == fold.entry_count
            and cached["last_transaction_id"] == fold.last_transaction_id
        )
        if not consistent:
            logger.warning(
                "Balance cache mismatch",
                extra={"account_id": account_id, "cached": str(cached["balance"]), "ledger": str(expected)},
            )
            await cache.invalidate(account_id)
        return consistent

    @staticmethod
    async def rebuild_cache(db: AsyncSession, cache: BalanceCache) -> int:
        """Recompute and store the balance of every account. Returns the account count."""
        result = await db.execute(select(Account).order_by(Account.id))
        accounts = list(result.scalars().all())
        for account in accounts:
            fold = await BalanceResolver._fold(db, account.id)
            balance = BalanceResolver._apply_normal_side(account, fold)
            await cache.set(account.id, balance, fold.entry_count, fold.last_transaction_id)
        logger.info("Balance cache rebuilt", extra={"accounts": len(accounts)})
        return len(accounts)

    @staticmethod
    def _apply_normal_side(account: Account, fold: AccountFold) -> Decimal:
        if account.normal_side == EntrySide.DEBIT:
            return fold.debits - fold.credits
        return fold.credits - fold.debits

    @staticmethod
    async def _fold(db: AsyncSession, account_id: int, as_of: Optional[datetime] = None) -> AccountFold:
        query = (
            select(
                func.sum(case((LedgerEntry.side == EntrySide.DEBIT, LedgerEntry.amount), else_=0)),
                func.sum(case((LedgerEntry.side == EntrySide.CREDIT, LedgerEntry.amount), else_=0)),
                func.count(LedgerEntry.id),
                func.max(LedgerEntry.transaction_id),
            )
            .select_from(LedgerEntry)
            .join(LedgerTransaction, LedgerTransaction.id == LedgerEntry.transaction_id)
            .where(LedgerEntry.account_id == account_id)
        )
        if as_of is not None:
            if as_of.tzinfo is not None:
                as_of = as_of.astimezone(timezone.utc)
            query = query.where(LedgerTransaction.posted_at <= as_of)

        row = (await db.execute(query)).one()
        debits, credits, entry_count, last_transaction_id = row
        return AccountFold(to_money(debits), to_money(credits), entry_count or 0, last_transaction_id)

    @staticmethod
    async def _fingerprint(db: AsyncSession, account_id: int):
        row = (await db.execute(
            select(func.count(LedgerEntry.id), func.max(LedgerEntry.transaction_id))
            .where(LedgerEntry.account_id == account_id)
        )).one()
        return (row[0] or 0, row[1])
