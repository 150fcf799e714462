"""
Ledger Transaction API Endpoints.

Manual journal vouchers, reversals and log reads.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_actor
from backend.app.db.session import get_db
from backend.app.domain.ledger.events import JournalVoucher
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.domain.ledger.posting_engine import PostingEngine
from backend.app.schemas.ledger import JournalEntryCreate, ReversalCreate, TransactionResponse

router = APIRouter(prefix="/transactions", tags=["Ledger"])


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def post_journal_entry(
    data: JournalEntryCreate,
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Post a manual journal voucher.

    Re-submitting the same reference returns the transaction already posted.
    """
    transaction = await PostingEngine.post(
        db,
        JournalVoucher(voucher_reference=data.reference, memo=data.description, lines=data.lines),
        actor=actor,
    )
    await db.commit()
    return TransactionResponse.model_validate(transaction)


@router.get("", response_model=List[TransactionResponse])
async def list_transactions(
    account_id: Optional[int] = Query(None, description="Only transactions touching this account"),
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=100, description="Items per page"),
    db: AsyncSession = Depends(get_db)
):
    return await LedgerStore.list_transactions(
        db, account_id=account_id, limit=page_size, offset=(page - 1) * page_size
    )


@router.get("/{transaction_id}", response_model=TransactionResponse)
async def get_transaction(
    transaction_id: int = Path(..., description="Transaction ID"),
    db: AsyncSession = Depends(get_db)
):
    return await LedgerStore.get_transaction(db, transaction_id)


@router.post("/{transaction_id}/reverse", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def reverse_transaction(
    data: Optional[ReversalCreate] = None,
    transaction_id: int = Path(..., description="Transaction ID"),
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Post the reversal of a transaction. The original stays readable.
    """
    reversal = await LedgerStore.reverse_transaction(
        db,
        transaction_id,
        description=data.description if data else None,
        actor=actor,
    )
    await db.commit()
    return TransactionResponse.model_validate(reversal)
