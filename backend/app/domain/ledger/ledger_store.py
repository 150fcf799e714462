"""
Ledger Store (Domain Logic).

System of record for accounts and transactions. Enforces the structural
invariants of the log at the storage boundary:

- every transaction has at least two entries
- debits equal credits exactly
- every entry references an existing, active account
- transactions and entries are never edited or removed; corrections are
  linked reversal transactions

Nothing here commits. Callers own the unit of work, so a transaction
becomes visible to other sessions only when the caller commits it.
"""

import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy import select, case, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import (
    AlreadyReversedError,
    DuplicateCodeError,
    EmptyTransactionError,
    NotFoundError,
    OwnedTransactionError,
    UnbalancedEntryError,
    UnknownAccountError,
)
from backend.app.domain.ledger.events import EntryInput
from backend.app.domain.ledger.money import ZERO, parse_amount, to_money
from backend.app.models.account import Account
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.ledger_enums import (
    AccountType,
    DEFAULT_NORMAL_SIDE,
    EntrySide,
    TransactionKind,
    TransactionStatus,
)
from backend.app.models.ledger_transaction import LedgerTransaction
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("fleet_ledger.ledger")

# Postings whose reversal must go through the invoice lifecycle
INVOICE_OWNED_KINDS = (TransactionKind.INVOICE, TransactionKind.PAYMENT)


class LedgerStore:

    # Accounts

    @staticmethod
    async def create_account(
        db: AsyncSession,
        code: str,
        name: str,
        account_type: AccountType,
        normal_side: Optional[EntrySide] = None,
        actor: Optional[str] = None,
    ) -> Account:
        """
        Create an account in the chart of accounts.

        normal_side defaults from the account type (ASSET/EXPENSE debit,
        everything else credit).

        Raises:
            DuplicateCodeError: if the code is already taken
        """
        existing = await db.execute(select(Account.id).where(Account.code == code))
        if existing.scalar_one_or_none() is not None:
            raise DuplicateCodeError(code)

        account = Account(
            code=code,
            name=name,
            account_type=account_type,
            normal_side=normal_side or DEFAULT_NORMAL_SIDE[account_type],
            is_active=True,
        )
        db.add(account)
        try:
            await db.flush()
        except IntegrityError:
            # Lost a race with a concurrent insert of the same code
            raise DuplicateCodeError(code)

        await log_event(
            db=db,
            action=AuditAction.ACCOUNT_CREATED,
            entity="Account",
            entity_id=account.id,
            actor=actor,
            metadata={
                "code": code,
                "type": account.account_type.value,
                "normal_side": account.normal_side.value,
            },
        )
        logger.info("Account created", extra={"account_id": account.id, "code": code})
        return account

    @staticmethod
    async def get_account(db: AsyncSession, account_id: int) -> Account:
        account = await db.get(Account, account_id)
        if not account:
            raise NotFoundError("Account", account_id)
        return account

    @staticmethod
    async def get_account_by_code(db: AsyncSession, code: str) -> Account:
        result = await db.execute(select(Account).where(Account.code == code))
        account = result.scalar_one_or_none()
        if not account:
            raise NotFoundError("Account", code)
        return account

    @staticmethod
    async def list_accounts(db: AsyncSession, include_inactive: bool = True) -> List[Account]:
        query = select(Account).order_by(Account.code)
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        result = await db.execute(query)
        return list(result.scalars().all())

    @staticmethod
    async def deactivate_account(db: AsyncSession, account_id: int, actor: Optional[str] = None) -> Account:
        """Flag an account inactive. Its history stays in the log."""
        account = await LedgerStore.get_account(db, account_id)
        if account.is_active:
            account.is_active = False
            await db.flush()
            await log_event(
                db=db,
                action=AuditAction.ACCOUNT_DEACTIVATED,
                entity="Account",
                entity_id=account.id,
                actor=actor,
                metadata={"code": account.code},
            )
        return account

    # Transactions

    @staticmethod
    async def append_transaction(
        db: AsyncSession,
        entries: Iterable[EntryInput],
        kind: TransactionKind = TransactionKind.JOURNAL,
        reference: Optional[str] = None,
        description: Optional[str] = None,
    ) -> LedgerTransaction:
        """
        Validate and append a balanced transaction.

        Entries keep the order given. The transaction header and all entries
        are flushed together; nothing is visible elsewhere before commit.

        Raises:
            EmptyTransactionError: fewer than two entries
            InvalidAmountError: an amount is not a positive 2-decimal value
            UnbalancedEntryError: debits != credits
            UnknownAccountError: an account is missing or inactive
        """
        return await LedgerStore._insert(
            db, list(entries), kind, reference, description, require_active=True
        )

    @staticmethod
    async def _insert(
        db: AsyncSession,
        entries: List[EntryInput],
        kind: TransactionKind,
        reference: Optional[str],
        description: Optional[str],
        require_active: bool,
        reverses_transaction_id: Optional[int] = None,
    ) -> LedgerTransaction:
        if len(entries) < 2:
            raise EmptyTransactionError(len(entries))

        amounts = [
            parse_amount(entry.amount, f"Line {index} amount")
            for index, entry in enumerate(entries, start=1)
        ]

        debit_total = sum((a for a, e in zip(amounts, entries) if e.side == EntrySide.DEBIT), ZERO)
        credit_total = sum((a for a, e in zip(amounts, entries) if e.side == EntrySide.CREDIT), ZERO)
        if debit_total != credit_total:
            raise UnbalancedEntryError(debit_total, credit_total)

        account_ids = {entry.account_id for entry in entries}
        result = await db.execute(
            select(Account.id, Account.is_active).where(Account.id.in_(account_ids))
        )
        found = {row.id: row.is_active for row in result}

        missing = sorted(account_ids - found.keys())
        if missing:
            raise UnknownAccountError(missing)
        if require_active:
            inactive = sorted(account_id for account_id, active in found.items() if not active)
            if inactive:
                raise UnknownAccountError(inactive, reason="inactive")

        transaction = LedgerTransaction(
            kind=kind,
            status=TransactionStatus.POSTED,
            reference=reference,
            description=description,
            reverses_transaction_id=reverses_transaction_id,
            posted_at=datetime.now(timezone.utc),
        )
        transaction.entries = [
            LedgerEntry(
                account_id=entry.account_id,
                line_number=line_number,
                side=entry.side,
                amount=amount,
                description=entry.description,
            )
            for line_number, (entry, amount) in enumerate(zip(entries, amounts), start=1)
        ]
        db.add(transaction)
        await db.flush()

        logger.info(
            "Transaction appended",
            extra={
                "transaction_id": transaction.id,
                "kind": kind.value,
                "reference": reference,
                "total": str(debit_total),
            },
        )
        return transaction

    @staticmethod
    async def reverse_transaction(
        db: AsyncSession,
        transaction_id: int,
        description: Optional[str] = None,
        actor: Optional[str] = None,
        allow_invoice_owned: bool = False,
    ) -> LedgerTransaction:
        """
        Post a linked reversal: same accounts and amounts, sides flipped.

        The original is marked REVERSED; both stay in the log. Reversals may
        touch inactive accounts so that history can always be corrected.

        INVOICE and PAYMENT postings are owned by an invoice and are only
        reversed by the invoice lifecycle (allow_invoice_owned=True), which
        updates the invoice in the same unit of work.

        Raises:
            NotFoundError: unknown transaction
            OwnedTransactionError: invoice-owned posting without allow_invoice_owned
            AlreadyReversedError: the transaction already has a reversal
        """
        result = await db.execute(
            select(LedgerTransaction)
            .where(LedgerTransaction.id == transaction_id)
            .with_for_update()
        )
        original = result.scalar_one_or_none()
        if not original:
            raise NotFoundError("Transaction", transaction_id)

        if original.kind in INVOICE_OWNED_KINDS and not allow_invoice_owned:
            raise OwnedTransactionError(original.id, original.kind.value)

        if original.status == TransactionStatus.REVERSED:
            existing = await db.execute(
                select(LedgerTransaction.id).where(
                    LedgerTransaction.reverses_transaction_id == transaction_id
                )
            )
            raise AlreadyReversedError(transaction_id, existing.scalar_one_or_none())

        flipped = [
            EntryInput(
                account_id=entry.account_id,
                side=entry.side.opposite,
                amount=entry.amount,
                description=f"Reversal of line {entry.line_number}",
            )
            for entry in original.entries
        ]

        try:
            reversal = await LedgerStore._insert(
                db,
                flipped,
                kind=TransactionKind.REVERSAL,
                reference=f"reversal:{original.id}",
                description=description or f"Reversal of transaction {original.id}",
                require_active=False,
                reverses_transaction_id=original.id,
            )
        except IntegrityError:
            # A concurrent reversal of the same transaction committed first
            raise AlreadyReversedError(transaction_id)

        original.status = TransactionStatus.REVERSED
        await db.flush()

        await log_event(
            db=db,
            action=AuditAction.TRANSACTION_REVERSED,
            entity="LedgerTransaction",
            entity_id=original.id,
            actor=actor,
            metadata={"reversal_id": reversal.id},
        )
        logger.info(
            "Transaction reversed",
            extra={"transaction_id": original.id, "reversal_id": reversal.id},
        )
        return reversal

    @staticmethod
    async def get_transaction(db: AsyncSession, transaction_id: int) -> LedgerTransaction:
        transaction = await db.get(LedgerTransaction, transaction_id)
        if not transaction:
            raise NotFoundError("Transaction", transaction_id)
        return transaction

    @staticmethod
    async def get_by_reference(db: AsyncSession, reference: str) -> Optional[LedgerTransaction]:
        result = await db.execute(
            select(LedgerTransaction).where(LedgerTransaction.reference == reference)
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def list_transactions(
        db: AsyncSession,
        account_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[LedgerTransaction]:
        """Transactions in posting order, optionally only those touching an account."""
        query = select(LedgerTransaction).order_by(LedgerTransaction.id)
        if account_id is not None:
            touching = select(LedgerEntry.transaction_id).where(LedgerEntry.account_id == account_id)
            query = query.where(LedgerTransaction.id.in_(touching))
        result = await db.execute(query.limit(limit).offset(offset))
        return list(result.scalars().all())

    @staticmethod
    async def find_unbalanced_transactions(db: AsyncSession) -> List[int]:
        """
        Integrity scan over the whole log.

        Returns ids of transactions whose entries do not balance or that have
        fewer than two entries. An empty list means the log is consistent.
        """
        debit_sum = func.sum(case((LedgerEntry.side == EntrySide.DEBIT, LedgerEntry.amount), else_=0))
        credit_sum = func.sum(case((LedgerEntry.side == EntrySide.CREDIT, LedgerEntry.amount), else_=0))
        result = await db.execute(
            select(
                LedgerEntry.transaction_id,
                debit_sum.label("debits"),
                credit_sum.label("credits"),
                func.count(LedgerEntry.id).label("entry_count"),
            ).group_by(LedgerEntry.transaction_id)
        )

        bad: List[int] = []
        seen = set()
        for row in result:
            seen.add(row.transaction_id)
            if row.entry_count < 2 or to_money(row.debits) != to_money(row.credits):
                bad.append(row.transaction_id)

        # Headers without any entries
        headers = await db.execute(select(LedgerTransaction.id))
        bad.extend(tid for tid in headers.scalars() if tid not in seen)

        if bad:
            logger.error("Unbalanced transactions found", extra={"transaction_ids": sorted(bad)})
        return sorted(bad)
