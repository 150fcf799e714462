"""
Invoice API Endpoints.

Draft creation and lifecycle transitions. Each transition commits inside
the lifecycle manager.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_actor
from backend.app.db.session import get_db
from backend.app.domain.invoicing.invoice_lifecycle import InvoiceLifecycleManager
from backend.app.models.invoice_enums import InvoiceStatus
from backend.app.schemas.invoice import (
    InvoiceCreate, InvoiceResponse, InvoiceVoid, PaymentCreate,
    PaymentRecordedResponse, PaymentResponse, PaymentVoid, ReconciliationResponse
)

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("", response_model=InvoiceResponse, status_code=status.HTTP_201_CREATED)
async def create_invoice(
    data: InvoiceCreate,
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a DRAFT invoice. Nothing is posted to the ledger yet.
    """
    invoice = await InvoiceLifecycleManager.create_invoice(
        db,
        customer_id=data.customer_id,
        line_items=data.line_items,
        due_date=data.due_date,
        invoice_date=data.invoice_date,
        booking_id=data.booking_id,
        notes=data.notes,
        actor=actor,
    )
    return InvoiceResponse.model_validate(invoice)


@router.get("", response_model=List[InvoiceResponse])
async def list_invoices(
    invoice_status: Optional[InvoiceStatus] = Query(None, alias="status"),
    customer_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    return await InvoiceLifecycleManager.list_invoices(
        db,
        status=invoice_status,
        customer_id=customer_id,
        limit=page_size,
        offset=(page - 1) * page_size,
    )


@router.get("/{invoice_id}", response_model=InvoiceResponse)
async def get_invoice(
    invoice_id: int = Path(..., description="Invoice ID"),
    db: AsyncSession = Depends(get_db)
):
    return await InvoiceLifecycleManager.get_invoice(db, invoice_id)


@router.post("/{invoice_id}/issue", response_model=InvoiceResponse)
async def issue_invoice(
    invoice_id: int = Path(..., description="Invoice ID"),
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Issue a DRAFT invoice and post the receivable.
    """
    invoice = await InvoiceLifecycleManager.issue(db, invoice_id, actor=actor)
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/payments", response_model=PaymentRecordedResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    data: PaymentCreate,
    invoice_id: int = Path(..., description="Invoice ID"),
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Record a payment. Rejected (not capped) if it exceeds the outstanding balance.
    """
    payment = await InvoiceLifecycleManager.record_payment(
        db,
        invoice_id,
        amount=data.amount,
        method=data.method,
        reference=data.reference,
        expected_version=data.expected_version,
        actor=actor,
    )
    invoice = await InvoiceLifecycleManager.get_invoice(db, invoice_id)
    return PaymentRecordedResponse(
        payment=PaymentResponse.model_validate(payment),
        invoice=InvoiceResponse.model_validate(invoice),
    )


@router.post("/{invoice_id}/void", response_model=InvoiceResponse)
async def void_invoice(
    data: Optional[InvoiceVoid] = None,
    invoice_id: int = Path(..., description="Invoice ID"),
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Void a DRAFT invoice, or an ISSUED invoice whose payments are all voided.
    """
    invoice = await InvoiceLifecycleManager.void(
        db, invoice_id, reason=data.reason if data else None, actor=actor
    )
    return InvoiceResponse.model_validate(invoice)


@router.post("/{invoice_id}/payments/{payment_id}/void", response_model=InvoiceResponse)
async def void_payment(
    data: Optional[PaymentVoid] = None,
    invoice_id: int = Path(..., description="Invoice ID"),
    payment_id: int = Path(..., description="Payment ID"),
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Void a payment. Its cash receipt is reversed and the invoice status recomputed.
    """
    invoice = await InvoiceLifecycleManager.void_payment(
        db, invoice_id, payment_id, reason=data.reason if data else None, actor=actor
    )
    return InvoiceResponse.model_validate(invoice)


@router.get("/{invoice_id}/reconciliation", response_model=ReconciliationResponse)
async def reconcile_invoice(
    invoice_id: int = Path(..., description="Invoice ID"),
    repair: bool = Query(False, description="Overwrite the cached paid amount from the ledger"),
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Check the invoice's cached paid amount against posted payment transactions.
    """
    result = await InvoiceLifecycleManager.reconcile(db, invoice_id, repair=repair, actor=actor)
    return ReconciliationResponse(**result._asdict())
