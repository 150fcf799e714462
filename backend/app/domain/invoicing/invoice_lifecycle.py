"""
Invoice Lifecycle Manager (Domain Logic).

State machine:

    DRAFT -> ISSUED -> PARTIALLY_PAID -> PAID
      |        |
      +--------+--> VOIDED   (only while no active payment remains)

Voiding a payment reverses its cash receipt and moves a PAID or
PARTIALLY_PAID invoice back to PARTIALLY_PAID or ISSUED.

Every transition that touches the ledger is one unit of work: lock the
invoice, read state and outstanding balance, validate, post, update the
invoice, commit. Any failure rolls back all of it.

Serialization per invoice:
- in-process: keyed asyncio lock held for the whole unit of work
- cross-process: SELECT ... FOR UPDATE on the invoice row, plus the mapper
  version counter; a lost race surfaces as ConcurrencyConflictError
"""

import logging
import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterable, List, NamedTuple, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.exceptions import (
    AlreadyReversedError,
    ConcurrencyConflictError,
    EmptyInvoiceError,
    InvalidAmountError,
    InvalidStateError,
    NotFoundError,
    OverpaymentError,
)
from backend.app.core.locks import invoice_locks
from backend.app.domain.ledger.events import InvoiceIssued, PaymentReceived
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.domain.ledger.money import ZERO, parse_amount, to_money
from backend.app.domain.ledger.posting_engine import PostingEngine
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_enums import InvoiceStatus, PaymentMethod
from backend.app.models.invoice_line_item import InvoiceLineItem
from backend.app.models.ledger_enums import TransactionStatus
from backend.app.models.ledger_transaction import LedgerTransaction
from backend.app.models.payment import Payment
from backend.app.services import registry
from backend.app.services.audit import log_event, AuditAction

logger = logging.getLogger("fleet_ledger.invoicing")

PAYABLE_STATUSES = (InvoiceStatus.ISSUED, InvoiceStatus.PARTIALLY_PAID)


class InvoiceReconciliation(NamedTuple):
    invoice_id: int
    cached_amount_paid: Decimal
    ledger_amount_paid: Decimal
    consistent: bool
    repaired: bool


@asynccontextmanager
async def invoice_unit_of_work(db: AsyncSession, invoice_id: int):
    """Hold the invoice lock, commit on success, roll back on any error."""
    async with invoice_locks.hold(invoice_id):
        try:
            yield
            await db.commit()
        except StaleDataError:
            await db.rollback()
            logger.warning("Invoice version conflict", extra={"invoice_id": invoice_id})
            raise ConcurrencyConflictError("Invoice", invoice_id)
        except Exception:
            await db.rollback()
            raise


class InvoiceLifecycleManager:

    @staticmethod
    async def create_invoice(
        db: AsyncSession,
        customer_id: int,
        line_items: Iterable,
        due_date: date,
        invoice_date: Optional[date] = None,
        booking_id: Optional[int] = None,
        notes: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Invoice:
        """
        Create a DRAFT invoice. No ledger posting happens until issue().

        line_items: objects with description, quantity, unit_price and an
        optional tax_rate (percent).

        Raises:
            NotFoundError: unknown customer, or booking not belonging to it
            EmptyInvoiceError: no line items
            InvalidAmountError: non-positive quantity or price, or a line
                amount that rounds to zero
        """
        line_items = list(line_items)
        if not line_items:
            raise EmptyInvoiceError()

        await registry.get_customer(db, customer_id)
        if booking_id is not None:
            booking = await registry.get_booking(db, booking_id)
            if booking.customer_id != customer_id:
                raise NotFoundError(f"Booking for customer {customer_id}", booking_id)

        items = []
        for line_number, item in enumerate(line_items, start=1):
            quantity = parse_amount(item.quantity, f"Item {line_number} quantity")
            unit_price = parse_amount(item.unit_price, f"Item {line_number} unit price")
            tax_rate = Decimal(str(item.tax_rate)) if item.tax_rate is not None else None
            if tax_rate is not None and tax_rate < 0:
                raise InvalidAmountError(f"Item {line_number} tax rate cannot be negative", tax_rate)

            amount = to_money(quantity * unit_price)
            if amount == ZERO:
                raise InvalidAmountError(
                    f"Item {line_number} amount rounds to zero", quantity * unit_price
                )
            tax_amount = to_money(amount * tax_rate / 100) if tax_rate else ZERO
            items.append(InvoiceLineItem(
                line_number=line_number,
                description=item.description,
                quantity=quantity,
                unit_price=unit_price,
                tax_rate=tax_rate,
                amount=amount,
                tax_amount=tax_amount,
            ))

        subtotal = sum((item.amount for item in items), ZERO)
        tax_total = sum((item.tax_amount for item in items), ZERO)
        invoice_date = invoice_date or date.today()

        try:
            invoice = Invoice(
                invoice_number=await InvoiceLifecycleManager._next_invoice_number(db, invoice_date.year),
                customer_id=customer_id,
                booking_id=booking_id,
                status=InvoiceStatus.DRAFT,
                invoice_date=invoice_date,
                due_date=due_date,
                subtotal=subtotal,
                tax_total=tax_total,
                total_amount=subtotal + tax_total,
                amount_paid=ZERO,
                notes=notes,
            )
            invoice.line_items = items
            invoice.payments = []
            db.add(invoice)
            await db.flush()

            await log_event(
                db=db,
                action=AuditAction.INVOICE_CREATED,
                entity="Invoice",
                entity_id=invoice.id,
                actor=actor,
                metadata={
                    "invoice_number": invoice.invoice_number,
                    "customer_id": customer_id,
                    "total_amount": str(invoice.total_amount),
                },
            )
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConcurrencyConflictError(
                "Invoice", None, message="Invoice number was taken concurrently; retry"
            )
        except Exception:
            await db.rollback()
            raise

        logger.info(
            "Invoice created",
            extra={"invoice_id": invoice.id, "invoice_number": invoice.invoice_number},
        )
        return invoice

    @staticmethod
    async def issue(db: AsyncSession, invoice_id: int, actor: Optional[str] = None) -> Invoice:
        """
        DRAFT -> ISSUED. Posts receivable recognition.

        Raises:
            NotFoundError: unknown invoice
            InvalidStateError: invoice is not DRAFT
        """
        async with invoice_unit_of_work(db, invoice_id):
            invoice = await InvoiceLifecycleManager._load_for_update(db, invoice_id)
            if invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError(invoice.id, invoice.status.value, "issue")

            transaction = await PostingEngine.post(
                db,
                InvoiceIssued(
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    subtotal=invoice.subtotal,
                    tax_total=invoice.tax_total,
                    total=invoice.total_amount,
                ),
                actor=actor,
            )

            invoice.issue_transaction_id = transaction.id
            invoice.status = InvoiceStatus.ISSUED
            invoice.issued_at = datetime.now(timezone.utc)
            await db.flush()

            await log_event(
                db=db,
                action=AuditAction.INVOICE_ISSUED,
                entity="Invoice",
                entity_id=invoice.id,
                actor=actor,
                metadata={"transaction_id": transaction.id, "total_amount": str(invoice.total_amount)},
            )

        logger.info("Invoice issued", extra={"invoice_id": invoice_id})
        return invoice

    @staticmethod
    async def record_payment(
        db: AsyncSession,
        invoice_id: int,
        amount,
        method: PaymentMethod = PaymentMethod.CASH,
        reference: Optional[str] = None,
        expected_version: Optional[int] = None,
        actor: Optional[str] = None,
    ) -> Payment:
        """
        Record a payment against an ISSUED or PARTIALLY_PAID invoice.

        A reference already recorded on this invoice returns the existing
        payment without posting again.

        Raises:
            NotFoundError: unknown invoice
            InvalidAmountError: amount not a positive 2-decimal value
            ConcurrencyConflictError: expected_version is stale, or a
                concurrent update won the race
            InvalidStateError: invoice not payable
            OverpaymentError: amount exceeds the outstanding balance
        """
        amount = parse_amount(amount, "Payment amount")

        async with invoice_unit_of_work(db, invoice_id):
            invoice = await InvoiceLifecycleManager._load_for_update(db, invoice_id)

            if reference is not None:
                for existing in invoice.payments:
                    if existing.reference == reference:
                        logger.info(
                            "Duplicate payment ignored",
                            extra={"invoice_id": invoice_id, "reference": reference},
                        )
                        return existing

            if expected_version is not None and invoice.version != expected_version:
                raise ConcurrencyConflictError("Invoice", invoice_id)

            if invoice.status not in PAYABLE_STATUSES:
                raise InvalidStateError(invoice.id, invoice.status.value, "record payment on")

            paid = await InvoiceLifecycleManager._ledger_amount_paid(db, invoice.id)
            outstanding = invoice.total_amount - paid
            if amount > outstanding:
                raise OverpaymentError(invoice.id, amount, outstanding)

            payment = Payment(
                reference=reference or uuid.uuid4().hex,
                amount=amount,
                method=method,
                received_at=datetime.now(timezone.utc),
            )
            invoice.payments.append(payment)
            await db.flush()

            transaction = await PostingEngine.post(
                db,
                PaymentReceived(
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    payment_reference=payment.reference,
                    amount=amount,
                ),
                actor=actor,
            )
            payment.transaction_id = transaction.id

            invoice.amount_paid = paid + amount
            invoice.status = InvoiceLifecycleManager._status_for_paid(invoice.amount_paid, invoice.total_amount)
            await db.flush()

            await log_event(
                db=db,
                action=AuditAction.PAYMENT_RECORDED,
                entity="Invoice",
                entity_id=invoice.id,
                actor=actor,
                metadata={
                    "payment_id": payment.id,
                    "amount": str(amount),
                    "transaction_id": transaction.id,
                    "status": invoice.status.value,
                },
            )

        logger.info(
            "Payment recorded",
            extra={"invoice_id": invoice_id, "amount": str(amount), "status": invoice.status.value},
        )
        return payment

    @staticmethod
    async def void(
        db: AsyncSession,
        invoice_id: int,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Invoice:
        """
        Void a DRAFT invoice, or an ISSUED one whose payments are all voided.

        Voiding an issued invoice reverses its receivable recognition.

        Raises:
            NotFoundError: unknown invoice
            InvalidStateError: any other status, or an active payment exists
        """
        async with invoice_unit_of_work(db, invoice_id):
            invoice = await InvoiceLifecycleManager._load_for_update(db, invoice_id)

            reversal_id = None
            if invoice.status == InvoiceStatus.ISSUED:
                paid = await InvoiceLifecycleManager._ledger_amount_paid(db, invoice.id)
                active_payments = [p for p in invoice.payments if p.voided_at is None]
                if paid != ZERO or active_payments:
                    raise InvalidStateError(invoice.id, invoice.status.value, "void")
                reversal = await LedgerStore.reverse_transaction(
                    db,
                    invoice.issue_transaction_id,
                    description=f"Void invoice {invoice.invoice_number}",
                    actor=actor,
                    allow_invoice_owned=True,
                )
                reversal_id = reversal.id
            elif invoice.status != InvoiceStatus.DRAFT:
                raise InvalidStateError(invoice.id, invoice.status.value, "void")

            invoice.status = InvoiceStatus.VOIDED
            invoice.voided_at = datetime.now(timezone.utc)
            invoice.void_reason = reason
            await db.flush()

            await log_event(
                db=db,
                action=AuditAction.INVOICE_VOIDED,
                entity="Invoice",
                entity_id=invoice.id,
                actor=actor,
                metadata={"reason": reason, "reversal_id": reversal_id},
            )

        logger.info("Invoice voided", extra={"invoice_id": invoice_id})
        return invoice

    @staticmethod
    async def void_payment(
        db: AsyncSession,
        invoice_id: int,
        payment_id: int,
        reason: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> Invoice:
        """
        Void a recorded payment and reverse its cash receipt.

        The paid amount is re-derived from the ledger afterwards and the
        status follows it: ISSUED when nothing remains paid, PAID when the
        total is still covered, PARTIALLY_PAID otherwise.

        Raises:
            NotFoundError: unknown invoice, or payment not on this invoice
            InvalidStateError: invoice is DRAFT or VOIDED
            AlreadyReversedError: the payment was already voided
        """
        async with invoice_unit_of_work(db, invoice_id):
            invoice = await InvoiceLifecycleManager._load_for_update(db, invoice_id)
            payment = next((p for p in invoice.payments if p.id == payment_id), None)
            if payment is None:
                raise NotFoundError(f"Payment on invoice {invoice_id}", payment_id)

            if invoice.status not in PAYABLE_STATUSES + (InvoiceStatus.PAID,):
                raise InvalidStateError(invoice.id, invoice.status.value, "void payment on")
            if payment.voided_at is not None:
                raise AlreadyReversedError(payment.transaction_id)

            reversal = await LedgerStore.reverse_transaction(
                db,
                payment.transaction_id,
                description=f"Void payment {payment.reference} on invoice {invoice.invoice_number}",
                actor=actor,
                allow_invoice_owned=True,
            )
            payment.voided_at = datetime.now(timezone.utc)
            payment.void_reason = reason

            invoice.amount_paid = await InvoiceLifecycleManager._ledger_amount_paid(db, invoice.id)
            invoice.status = InvoiceLifecycleManager._status_for_paid(invoice.amount_paid, invoice.total_amount)
            await db.flush()

            await log_event(
                db=db,
                action=AuditAction.PAYMENT_VOIDED,
                entity="Invoice",
                entity_id=invoice.id,
                actor=actor,
                metadata={
                    "payment_id": payment.id,
                    "amount": str(payment.amount),
                    "reversal_id": reversal.id,
                    "reason": reason,
                    "status": invoice.status.value,
                },
            )

        logger.info(
            "Payment voided",
            extra={"invoice_id": invoice_id, "payment_id": payment_id, "status": invoice.status.value},
        )
        return invoice

    @staticmethod
    async def reconcile(
        db: AsyncSession,
        invoice_id: int,
        repair: bool = False,
        actor: Optional[str] = None,
    ) -> InvoiceReconciliation:
        """
        Compare the cached amount_paid with the posted payment transactions.

        With repair=True a mismatching cache is overwritten from the ledger,
        and an ISSUED, PARTIALLY_PAID or PAID invoice gets the status that
        matches the derived amount.
        """
        async with invoice_unit_of_work(db, invoice_id):
            invoice = await InvoiceLifecycleManager._load_for_update(db, invoice_id)
            cached = to_money(invoice.amount_paid)
            derived = await InvoiceLifecycleManager._ledger_amount_paid(db, invoice.id)
            expected_status = invoice.status
            if invoice.status in PAYABLE_STATUSES + (InvoiceStatus.PAID,):
                expected_status = InvoiceLifecycleManager._status_for_paid(derived, invoice.total_amount)
            consistent = cached == derived and expected_status == invoice.status

            repaired = False
            if not consistent:
                logger.warning(
                    "Invoice paid amount out of sync with ledger",
                    extra={
                        "invoice_id": invoice_id,
                        "cached": str(cached),
                        "ledger": str(derived),
                        "status": invoice.status.value,
                    },
                )
                if repair:
                    previous_status = invoice.status
                    invoice.amount_paid = derived
                    invoice.status = expected_status
                    await db.flush()
                    await log_event(
                        db=db,
                        action=AuditAction.INVOICE_RECONCILED,
                        entity="Invoice",
                        entity_id=invoice.id,
                        actor=actor,
                        metadata={
                            "cached": str(cached),
                            "ledger": str(derived),
                            "previous_status": previous_status.value,
                            "status": invoice.status.value,
                        },
                    )
                    repaired = True

        return InvoiceReconciliation(invoice_id, cached, derived, consistent, repaired)

    @staticmethod
    async def get_invoice(db: AsyncSession, invoice_id: int) -> Invoice:
        result = await db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    @staticmethod
    async def list_invoices(
        db: AsyncSession,
        status: Optional[InvoiceStatus] = None,
        customer_id: Optional[int] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Invoice]:
        query = select(Invoice).order_by(Invoice.id)
        if status is not None:
            query = query.where(Invoice.status == status)
        if customer_id is not None:
            query = query.where(Invoice.customer_id == customer_id)
        result = await db.execute(query.limit(limit).offset(offset))
        return list(result.scalars().all())

    @staticmethod
    async def _load_for_update(db: AsyncSession, invoice_id: int) -> Invoice:
        result = await db.execute(
            select(Invoice)
            .where(Invoice.id == invoice_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        invoice = result.scalar_one_or_none()
        if not invoice:
            raise NotFoundError("Invoice", invoice_id)
        return invoice

    @staticmethod
    async def _ledger_amount_paid(db: AsyncSession, invoice_id: int) -> Decimal:
        """Sum of payments whose ledger transaction is still POSTED."""
        result = await db.execute(
            select(func.sum(Payment.amount))
            .join(LedgerTransaction, LedgerTransaction.id == Payment.transaction_id)
            .where(
                Payment.invoice_id == invoice_id,
                LedgerTransaction.status == TransactionStatus.POSTED,
            )
        )
        return to_money(result.scalar())

    @staticmethod
    def _status_for_paid(paid: Decimal, total: Decimal) -> InvoiceStatus:
        if paid == ZERO:
            return InvoiceStatus.ISSUED
        if paid >= total:
            return InvoiceStatus.PAID
        return InvoiceStatus.PARTIALLY_PAID

    @staticmethod
    async def _next_invoice_number(db: AsyncSession, year: int) -> str:
        prefix = f"INV-{year}-"
        result = await db.execute(
            select(func.count(Invoice.id)).where(Invoice.invoice_number.like(f"{prefix}%"))
        )
        return f"{prefix}{result.scalar() + 1:04d}"
