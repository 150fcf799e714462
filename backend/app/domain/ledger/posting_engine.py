"""
Posting Engine (Domain Logic).

Translates business events into balanced entry sets and appends them to
the ledger as one unit. The only writer of new transactions.

Idempotent: an event whose reference already exists in the log returns the
existing transaction instead of posting again.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import ConcurrencyConflictError, UnknownAccountError
from backend.app.domain.ledger.events import EntryInput, JournalVoucher, LedgerEvent
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.domain.ledger.money import ZERO, to_money
from backend.app.domain.ledger.posting_rules import POSTING_RULES, PostingRule, role_account_code
from backend.app.models.account import Account
from backend.app.models.ledger_enums import TransactionKind
from backend.app.models.ledger_transaction import LedgerTransaction
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("fleet_ledger.posting")


class PostingEngine:

    @staticmethod
    async def post(
        db: AsyncSession,
        event: LedgerEvent,
        actor: Optional[str] = None,
    ) -> LedgerTransaction:
        """
        Post a business event to the ledger.

        Flow:
        1. Idempotency check on the event reference
        2. Build entries (explicit lines, or the event kind's posting rule)
        3. Append through the ledger store (flush only; caller commits)

        Raises:
            Any ledger store validation error, unchanged.
            ConcurrencyConflictError: another writer committed the same
                reference between our check and our insert. Retrying
                returns that transaction.
        """
        reference = event.reference

        existing = await LedgerStore.get_by_reference(db, reference)
        if existing:
            logger.info(
                "Duplicate event ignored",
                extra={"reference": reference, "transaction_id": existing.id},
            )
            return existing

        if isinstance(event, JournalVoucher):
            entries = list(event.lines)
            kind = TransactionKind.JOURNAL
        else:
            rule = POSTING_RULES[event.kind]
            entries = await PostingEngine._build_entries(db, rule, event)
            kind = rule.transaction_kind

        try:
            transaction = await LedgerStore.append_transaction(
                db,
                entries,
                kind=kind,
                reference=reference,
                description=event.description,
            )
        except IntegrityError:
            raise ConcurrencyConflictError(
                "LedgerTransaction",
                reference,
                message=f"Event {reference} was posted concurrently; retry to read it",
            )

        await log_event(
            db=db,
            action=AuditAction.TRANSACTION_POSTED,
            entity="LedgerTransaction",
            entity_id=transaction.id,
            actor=actor,
            metadata={"event": event.kind, "reference": reference},
        )
        return transaction

    @staticmethod
    async def _build_entries(db: AsyncSession, rule: PostingRule, event) -> List[EntryInput]:
        legs = [
            (leg, to_money(getattr(event, leg.amount_field)))
            for leg in rule.legs
        ]
        # Zero legs (e.g. no tax) are dropped
        legs = [(leg, amount) for leg, amount in legs if amount != ZERO]

        codes = {leg.role: role_account_code(leg.role) for leg, _ in legs}
        result = await db.execute(
            select(Account.code, Account.id).where(Account.code.in_(set(codes.values())))
        )
        ids_by_code = {row.code: row.id for row in result}

        missing = sorted(code for code in set(codes.values()) if code not in ids_by_code)
        if missing:
            logger.error(
                "Posting rule references missing accounts",
                extra={"event": event.kind, "codes": missing},
            )
            raise UnknownAccountError(missing, reason="posting_rule")

        return [
            EntryInput(
                account_id=ids_by_code[codes[leg.role]],
                side=leg.side,
                amount=amount,
                description=f"{event.description} ({leg.role})",
            )
            for leg, amount in legs
        ]
