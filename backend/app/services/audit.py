"""
Audit logging service for tracking ledger postings and invoice transitions.

Audit rows are added to the caller's unit of work, so they commit or roll
back together with the action they describe.
"""

from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc
from backend.app.models.audit_log import AuditLog


# Audit event constants
class AuditAction:
    """Standardized audit action constants."""
    # Chart of accounts
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    ACCOUNT_DEACTIVATED = "ACCOUNT_DEACTIVATED"

    # Ledger
    TRANSACTION_POSTED = "TRANSACTION_POSTED"
    TRANSACTION_REVERSED = "TRANSACTION_REVERSED"

    # Invoicing
    INVOICE_CREATED = "INVOICE_CREATED"
    INVOICE_ISSUED = "INVOICE_ISSUED"
    INVOICE_VOIDED = "INVOICE_VOIDED"
    INVOICE_RECONCILED = "INVOICE_RECONCILED"
    PAYMENT_RECORDED = "PAYMENT_RECORDED"
    PAYMENT_VOIDED = "PAYMENT_VOIDED"


async def log_event(
    db: AsyncSession,
    action: str,
    entity: str,
    entity_id: Optional[int] = None,
    actor: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None
) -> AuditLog:
    """
    Record an action in the audit log.

    Args:
        db: Database session (caller commits)
        action: Action being performed (use AuditAction constants)
        entity: Entity type, e.g. "Invoice" or "LedgerTransaction"
        entity_id: ID of the entity acted upon
        actor: Free-form actor identifier (None for system actions)
        metadata: Additional context as JSON

    Returns:
        Pending AuditLog instance
    """
    audit_log = AuditLog(
        actor=actor,
        action=action,
        entity=entity,
        entity_id=entity_id,
        meta_data=metadata
    )

    db.add(audit_log)
    await db.flush()

    return audit_log


async def get_audit_trail(
    db: AsyncSession,
    entity: Optional[str] = None,
    entity_id: Optional[int] = None,
    action: Optional[str] = None,
    limit: int = 100
) -> list[AuditLog]:
    """
    Retrieve audit trail with optional filtering.

    Args:
        db: Database session
        entity: Filter by entity type
        entity_id: Filter by entity ID
        action: Filter by action type
        limit: Maximum number of records to return

    Returns:
        List of AuditLog instances, most recent first
    """
    query = select(AuditLog).order_by(desc(AuditLog.id))

    if entity:
        query = query.where(AuditLog.entity == entity)

    if entity_id is not None:
        query = query.where(AuditLog.entity_id == entity_id)

    if action:
        query = query.where(AuditLog.action == action)

    query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())
