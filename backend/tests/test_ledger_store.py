"""
Ledger Store Tests.

Covers account management and the structural rules of the transaction log.
"""

import pytest
from decimal import Decimal
from sqlalchemy import select, func

from backend.app.core.exceptions import (
    AlreadyReversedError,
    DuplicateCodeError,
    EmptyTransactionError,
    InvalidAmountError,
    NotFoundError,
    UnbalancedEntryError,
    UnknownAccountError,
)
from backend.app.domain.ledger.events import EntryInput
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.models.audit_log import AuditLog
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.ledger_enums import AccountType, EntrySide, TransactionKind, TransactionStatus
from backend.app.models.ledger_transaction import LedgerTransaction


def debit(account, amount):
    return EntryInput(account_id=account.id, side=EntrySide.DEBIT, amount=Decimal(amount))


def credit(account, amount):
    return EntryInput(account_id=account.id, side=EntrySide.CREDIT, amount=Decimal(amount))


async def count_transactions(db):
    return (await db.execute(select(func.count(LedgerTransaction.id)))).scalar()


# Accounts

@pytest.mark.asyncio
async def test_create_account_defaults_normal_side(db_session):
    asset = await LedgerStore.create_account(db_session, "1000", "Cash", AccountType.ASSET)
    revenue = await LedgerStore.create_account(db_session, "4000", "Revenue", AccountType.REVENUE)
    expense = await LedgerStore.create_account(db_session, "5000", "Fuel", AccountType.EXPENSE)
    liability = await LedgerStore.create_account(db_session, "2000", "Payables", AccountType.LIABILITY)
    await db_session.commit()

    assert asset.normal_side == EntrySide.DEBIT
    assert expense.normal_side == EntrySide.DEBIT
    assert revenue.normal_side == EntrySide.CREDIT
    assert liability.normal_side == EntrySide.CREDIT
    assert asset.is_active is True


@pytest.mark.asyncio
async def test_create_account_explicit_normal_side(db_session):
    contra = await LedgerStore.create_account(
        db_session, "1590", "Accumulated Depreciation", AccountType.ASSET, normal_side=EntrySide.CREDIT
    )
    assert contra.normal_side == EntrySide.CREDIT


@pytest.mark.asyncio
async def test_duplicate_account_code_rejected(db_session):
    await LedgerStore.create_account(db_session, "1000", "Cash", AccountType.ASSET)
    await db_session.commit()

    with pytest.raises(DuplicateCodeError) as exc_info:
        await LedgerStore.create_account(db_session, "1000", "Petty Cash", AccountType.ASSET)
    assert exc_info.value.error_code == "ERR_LEDGER_004"
    assert exc_info.value.details["code"] == "1000"


@pytest.mark.asyncio
async def test_account_classification_is_fixed(db_session):
    account = await LedgerStore.create_account(db_session, "1000", "Cash", AccountType.ASSET)

    with pytest.raises(ValueError):
        account.account_type = AccountType.REVENUE
    with pytest.raises(ValueError):
        account.normal_side = EntrySide.CREDIT


@pytest.mark.asyncio
async def test_account_lookup(db_session, chart):
    by_code = await LedgerStore.get_account_by_code(db_session, "1000")
    assert by_code.id == chart["cash"].id

    with pytest.raises(NotFoundError):
        await LedgerStore.get_account(db_session, 9999)
    with pytest.raises(NotFoundError):
        await LedgerStore.get_account_by_code(db_session, "9999")


@pytest.mark.asyncio
async def test_deactivated_account_hidden_from_active_listing(db_session, chart):
    await LedgerStore.deactivate_account(db_session, chart["expense"].id)
    await db_session.commit()

    everything = await LedgerStore.list_accounts(db_session)
    active = await LedgerStore.list_accounts(db_session, include_inactive=False)

    assert [a.code for a in everything] == ["1000", "1100", "2100", "4000", "5000"]
    assert "5000" not in [a.code for a in active]


@pytest.mark.asyncio
async def test_account_creation_is_audited(db_session):
    account = await LedgerStore.create_account(db_session, "1000", "Cash", AccountType.ASSET, actor="ops@fleet")
    await db_session.commit()

    result = await db_session.execute(
        select(AuditLog).where(AuditLog.entity == "Account", AuditLog.entity_id == account.id)
    )
    entry = result.scalar_one()
    assert entry.action == "ACCOUNT_CREATED"
    assert entry.actor == "ops@fleet"
    assert entry.meta_data["code"] == "1000"


# Transactions

@pytest.mark.asyncio
async def test_append_balanced_transaction(db_session, chart):
    transaction = await LedgerStore.append_transaction(
        db_session,
        [debit(chart["cash"], "250.00"), credit(chart["revenue"], "250.00")],
        reference="manual-1",
        description="Walk-in rental",
    )
    await db_session.commit()

    stored = await LedgerStore.get_transaction(db_session, transaction.id)
    assert stored.kind == TransactionKind.JOURNAL
    assert stored.status == TransactionStatus.POSTED
    assert stored.posted_at is not None
    assert [e.line_number for e in stored.entries] == [1, 2]
    assert [e.side for e in stored.entries] == [EntrySide.DEBIT, EntrySide.CREDIT]
    assert all(e.amount == Decimal("250.00") for e in stored.entries)


@pytest.mark.asyncio
async def test_append_multi_leg_transaction(db_session, chart):
    transaction = await LedgerStore.append_transaction(
        db_session,
        [
            debit(chart["receivable"], "105.00"),
            credit(chart["revenue"], "100.00"),
            credit(chart["tax_payable"], "5.00"),
        ],
    )
    assert len(transaction.entries) == 3


@pytest.mark.asyncio
async def test_unbalanced_transaction_rejected(db_session, chart):
    with pytest.raises(UnbalancedEntryError) as exc_info:
        await LedgerStore.append_transaction(
            db_session,
            [debit(chart["cash"], "100.00"), credit(chart["revenue"], "99.99")],
        )

    assert exc_info.value.details["debit_total"] == "100.00"
    assert exc_info.value.details["credit_total"] == "99.99"
    assert await count_transactions(db_session) == 0


@pytest.mark.asyncio
async def test_single_entry_transaction_rejected(db_session, chart):
    with pytest.raises(EmptyTransactionError):
        await LedgerStore.append_transaction(db_session, [debit(chart["cash"], "10.00")])
    with pytest.raises(EmptyTransactionError):
        await LedgerStore.append_transaction(db_session, [])


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "-10.00", "10.001"])
async def test_invalid_entry_amount_rejected(db_session, chart, amount):
    with pytest.raises(InvalidAmountError):
        await LedgerStore.append_transaction(
            db_session,
            [debit(chart["cash"], amount), credit(chart["revenue"], amount)],
        )


@pytest.mark.asyncio
async def test_unknown_account_rejected(db_session, chart):
    with pytest.raises(UnknownAccountError) as exc_info:
        await LedgerStore.append_transaction(
            db_session,
            [
                debit(chart["cash"], "10.00"),
                EntryInput(account_id=4242, side=EntrySide.CREDIT, amount=Decimal("10.00")),
            ],
        )
    assert exc_info.value.details["accounts"] == [4242]
    assert await count_transactions(db_session) == 0


@pytest.mark.asyncio
async def test_inactive_account_rejected(db_session, chart):
    await LedgerStore.deactivate_account(db_session, chart["expense"].id)

    with pytest.raises(UnknownAccountError) as exc_info:
        await LedgerStore.append_transaction(
            db_session,
            [debit(chart["expense"], "40.00"), credit(chart["cash"], "40.00")],
        )
    assert exc_info.value.details["reason"] == "inactive"


@pytest.mark.asyncio
async def test_duplicate_reference_not_stored_twice(db_session, chart):
    from sqlalchemy.exc import IntegrityError

    await LedgerStore.append_transaction(
        db_session,
        [debit(chart["cash"], "10.00"), credit(chart["revenue"], "10.00")],
        reference="once-only",
    )
    await db_session.commit()

    with pytest.raises(IntegrityError):
        await LedgerStore.append_transaction(
            db_session,
            [debit(chart["cash"], "10.00"), credit(chart["revenue"], "10.00")],
            reference="once-only",
        )
    await db_session.rollback()
    assert await count_transactions(db_session) == 1


# Reversals

@pytest.mark.asyncio
async def test_reverse_transaction(db_session, chart):
    original = await LedgerStore.append_transaction(
        db_session,
        [debit(chart["cash"], "75.50"), credit(chart["revenue"], "75.50")],
    )
    await db_session.commit()

    reversal = await LedgerStore.reverse_transaction(db_session, original.id, actor="auditor")
    await db_session.commit()

    assert reversal.kind == TransactionKind.REVERSAL
    assert reversal.reverses_transaction_id == original.id
    assert reversal.reference == f"reversal:{original.id}"
    assert [(e.account_id, e.side, e.amount) for e in reversal.entries] == [
        (chart["cash"].id, EntrySide.CREDIT, Decimal("75.50")),
        (chart["revenue"].id, EntrySide.DEBIT, Decimal("75.50")),
    ]

    # Original stays readable, only its status changes
    refreshed = await LedgerStore.get_transaction(db_session, original.id)
    assert refreshed.status == TransactionStatus.REVERSED
    assert len(refreshed.entries) == 2


@pytest.mark.asyncio
async def test_reverse_twice_rejected(db_session, chart):
    original = await LedgerStore.append_transaction(
        db_session,
        [debit(chart["cash"], "20.00"), credit(chart["revenue"], "20.00")],
    )
    reversal = await LedgerStore.reverse_transaction(db_session, original.id)
    await db_session.commit()

    with pytest.raises(AlreadyReversedError) as exc_info:
        await LedgerStore.reverse_transaction(db_session, original.id)
    assert exc_info.value.details["reversal_id"] == reversal.id


@pytest.mark.asyncio
async def test_reverse_unknown_transaction(db_session, chart):
    with pytest.raises(NotFoundError):
        await LedgerStore.reverse_transaction(db_session, 12345)


@pytest.mark.asyncio
async def test_reversal_allowed_on_inactive_account(db_session, chart):
    original = await LedgerStore.append_transaction(
        db_session,
        [debit(chart["expense"], "60.00"), credit(chart["cash"], "60.00")],
    )
    await LedgerStore.deactivate_account(db_session, chart["expense"].id)

    reversal = await LedgerStore.reverse_transaction(db_session, original.id)
    assert reversal.reverses_transaction_id == original.id


# Reads

@pytest.mark.asyncio
async def test_list_transactions_filtered_by_account(db_session, chart):
    first = await LedgerStore.append_transaction(
        db_session, [debit(chart["cash"], "10.00"), credit(chart["revenue"], "10.00")]
    )
    second = await LedgerStore.append_transaction(
        db_session, [debit(chart["expense"], "5.00"), credit(chart["cash"], "5.00")]
    )
    third = await LedgerStore.append_transaction(
        db_session, [debit(chart["receivable"], "7.00"), credit(chart["revenue"], "7.00")]
    )
    await db_session.commit()

    all_ids = [t.id for t in await LedgerStore.list_transactions(db_session)]
    cash_ids = [t.id for t in await LedgerStore.list_transactions(db_session, account_id=chart["cash"].id)]
    paged = await LedgerStore.list_transactions(db_session, limit=1, offset=1)

    assert all_ids == [first.id, second.id, third.id]
    assert cash_ids == [first.id, second.id]
    assert [t.id for t in paged] == [second.id]


@pytest.mark.asyncio
async def test_integrity_scan_clean_log(db_session, chart):
    original = await LedgerStore.append_transaction(
        db_session, [debit(chart["cash"], "10.00"), credit(chart["revenue"], "10.00")]
    )
    await LedgerStore.reverse_transaction(db_session, original.id)
    await db_session.commit()

    assert await LedgerStore.find_unbalanced_transactions(db_session) == []


@pytest.mark.asyncio
async def test_integrity_scan_flags_tampered_rows(db_session, chart):
    transaction = await LedgerStore.append_transaction(
        db_session, [debit(chart["cash"], "10.00"), credit(chart["revenue"], "10.00")]
    )
    await db_session.commit()

    # Simulate out-of-band corruption
    db_session.add(LedgerEntry(
        transaction_id=transaction.id,
        account_id=chart["cash"].id,
        line_number=3,
        side=EntrySide.DEBIT,
        amount=Decimal("1.00"),
    ))
    orphan = LedgerTransaction(kind=TransactionKind.JOURNAL, status=TransactionStatus.POSTED)
    orphan.posted_at = transaction.posted_at
    orphan.entries = []
    db_session.add(orphan)
    await db_session.commit()

    assert await LedgerStore.find_unbalanced_transactions(db_session) == sorted([transaction.id, orphan.id])
