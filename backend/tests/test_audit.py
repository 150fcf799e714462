"""
Audit Trail Tests.

Every ledger and invoice action leaves an audit row in the same unit of
work; failed actions leave none.
"""

import pytest
from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from backend.app.core.exceptions import OverpaymentError
from backend.app.domain.invoicing.invoice_lifecycle import InvoiceLifecycleManager
from backend.app.services.audit import AuditAction, get_audit_trail


async def issued_invoice(db, customer):
    invoice = await InvoiceLifecycleManager.create_invoice(
        db,
        customer_id=customer.id,
        line_items=[SimpleNamespace(description="Rental", quantity=Decimal("1"), unit_price=Decimal("100.00"), tax_rate=None)],
        due_date=date(2025, 8, 31),
    )
    return await InvoiceLifecycleManager.issue(db, invoice.id, actor="clerk")


@pytest.mark.asyncio
async def test_invoice_history_recorded(db_session, chart, customer):
    invoice = await issued_invoice(db_session, customer)
    await InvoiceLifecycleManager.record_payment(db_session, invoice.id, Decimal("100.00"), actor="cashier")

    trail = await get_audit_trail(db_session, entity="Invoice", entity_id=invoice.id)

    # Most recent first
    assert [entry.action for entry in trail] == [
        AuditAction.PAYMENT_RECORDED,
        AuditAction.INVOICE_ISSUED,
        AuditAction.INVOICE_CREATED,
    ]
    assert trail[1].actor == "clerk"


@pytest.mark.asyncio
async def test_postings_recorded_against_transactions(db_session, chart, customer):
    invoice = await issued_invoice(db_session, customer)

    posted = await get_audit_trail(db_session, action=AuditAction.TRANSACTION_POSTED)

    assert len(posted) == 1
    assert posted[0].entity == "LedgerTransaction"
    assert posted[0].entity_id == invoice.issue_transaction_id
    assert posted[0].meta_data["event"] == "invoice-issued"


@pytest.mark.asyncio
async def test_failed_action_leaves_no_audit_row(db_session, chart, customer):
    invoice = await issued_invoice(db_session, customer)

    with pytest.raises(OverpaymentError):
        await InvoiceLifecycleManager.record_payment(db_session, invoice.id, Decimal("150.00"))

    assert await get_audit_trail(db_session, action=AuditAction.PAYMENT_RECORDED) == []


@pytest.mark.asyncio
async def test_trail_limit(db_session, chart, customer):
    for _ in range(3):
        await issued_invoice(db_session, customer)

    assert len(await get_audit_trail(db_session, limit=2)) == 2
