"""
Integrity Sweep Tests.

The operator sweep run by verify_ledger.py.
"""

import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from backend.app.domain.invoicing.invoice_lifecycle import InvoiceLifecycleManager
from backend.app.domain.ledger.balance_resolver import BalanceResolver
from backend.app.models.invoice_enums import InvoiceStatus
from backend.app.models.ledger_entry import LedgerEntry
from backend.app.models.ledger_enums import EntrySide
from backend.app.services.cache import BalanceCache
from backend.app.services.integrity import run_integrity_check


async def paid_invoice(db, customer, amount="100.00"):
    line = SimpleNamespace(description="Van rental", quantity=Decimal("1"), unit_price=Decimal(amount), tax_rate=None)
    invoice = await InvoiceLifecycleManager.create_invoice(
        db, customer_id=customer.id, line_items=[line], due_date=date(2025, 5, 31)
    )
    await InvoiceLifecycleManager.issue(db, invoice.id)
    await InvoiceLifecycleManager.record_payment(db, invoice.id, Decimal(amount))
    return await InvoiceLifecycleManager.get_invoice(db, invoice.id)


@pytest.mark.asyncio
async def test_clean_ledger_is_healthy(db_session, chart, customer, redis_client_session):
    cache = BalanceCache(redis_client_session, ttl_seconds=60)
    await paid_invoice(db_session, customer)
    await BalanceResolver.get_balance(db_session, chart["cash"].id, cache=cache)

    report = await run_integrity_check(db_session, cache=cache)

    assert report.healthy is True
    assert report.unbalanced_transaction_ids == []
    assert report.drifted_invoice_ids == []
    assert report.stale_cache_account_ids == []
    assert report.cache_entries_rebuilt is None


@pytest.mark.asyncio
async def test_sweep_without_cache_skips_cache_checks(db_session, chart, customer):
    await paid_invoice(db_session, customer)

    report = await run_integrity_check(db_session, rebuild_cache=True)

    assert report.healthy is True
    assert report.cache_entries_rebuilt is None


@pytest.mark.asyncio
async def test_drifted_invoice_reported_then_repaired(db_session, chart, customer):
    invoice = await paid_invoice(db_session, customer)
    invoice.amount_paid = Decimal("0.00")
    invoice.status = InvoiceStatus.ISSUED
    await db_session.commit()

    report = await run_integrity_check(db_session)
    assert report.healthy is False
    assert report.drifted_invoice_ids == [invoice.id]
    assert report.repaired_invoice_ids == []

    report = await run_integrity_check(db_session, repair_invoices=True, actor="ops")
    assert report.healthy is True
    assert report.repaired_invoice_ids == [invoice.id]

    invoice = await InvoiceLifecycleManager.get_invoice(db_session, invoice.id)
    assert invoice.status == InvoiceStatus.PAID
    assert invoice.amount_paid == Decimal("100.00")


@pytest.mark.asyncio
async def test_stale_cache_dropped_and_rebuilt(db_session, chart, customer, redis_client_session):
    cache = BalanceCache(redis_client_session, ttl_seconds=60)
    await paid_invoice(db_session, customer)
    await BalanceResolver.get_balance(db_session, chart["cash"].id, cache=cache)
    cached = await cache.get(chart["cash"].id)
    await cache.set(chart["cash"].id, Decimal("5.00"), cached["entry_count"], cached["last_transaction_id"])

    report = await run_integrity_check(db_session, cache=cache, rebuild_cache=True)

    assert report.stale_cache_account_ids == [chart["cash"].id]
    assert report.cache_entries_rebuilt == len(chart)
    assert (await cache.get(chart["cash"].id))["balance"] == Decimal("100.00")
    assert report.healthy is True


@pytest.mark.asyncio
async def test_tampered_entry_makes_ledger_unhealthy(db_session, chart, customer):
    invoice = await paid_invoice(db_session, customer)

    # Simulate out-of-band corruption
    db_session.add(LedgerEntry(
        transaction_id=invoice.issue_transaction_id,
        account_id=chart["cash"].id,
        line_number=9,
        side=EntrySide.DEBIT,
        amount=Decimal("1.00"),
    ))
    await db_session.commit()

    report = await run_integrity_check(db_session)

    assert report.unbalanced_transaction_ids == [invoice.issue_transaction_id]
    assert report.healthy is False
