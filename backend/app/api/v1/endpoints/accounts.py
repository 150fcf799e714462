"""
Account API Endpoints.

Chart of accounts management and balance queries.
"""

from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_actor, get_balance_cache
from backend.app.db.session import get_db
from backend.app.domain.ledger.balance_resolver import BalanceResolver
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.schemas.ledger import AccountCreate, AccountResponse, BalanceResponse
from backend.app.services.cache import BalanceCache

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
async def create_account(
    data: AccountCreate,
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Create a new account. Type and normal side cannot be changed later.
    """
    account = await LedgerStore.create_account(
        db,
        code=data.code,
        name=data.name,
        account_type=data.account_type,
        normal_side=data.normal_side,
        actor=actor,
    )
    await db.commit()
    return AccountResponse.model_validate(account)


@router.get("", response_model=List[AccountResponse])
async def list_accounts(
    include_inactive: bool = Query(True, description="Include deactivated accounts"),
    db: AsyncSession = Depends(get_db)
):
    """
    List the chart of accounts ordered by code.
    """
    return await LedgerStore.list_accounts(db, include_inactive=include_inactive)


@router.get("/{account_id}", response_model=AccountResponse)
async def get_account(
    account_id: int = Path(..., description="Account ID"),
    db: AsyncSession = Depends(get_db)
):
    return await LedgerStore.get_account(db, account_id)


@router.post("/{account_id}/deactivate", response_model=AccountResponse)
async def deactivate_account(
    account_id: int = Path(..., description="Account ID"),
    actor: Optional[str] = Depends(get_actor),
    db: AsyncSession = Depends(get_db)
):
    """
    Deactivate an account. History is kept; new postings are rejected.
    """
    account = await LedgerStore.deactivate_account(db, account_id, actor=actor)
    await db.commit()
    return AccountResponse.model_validate(account)


@router.get("/{account_id}/balance", response_model=BalanceResponse)
async def get_account_balance(
    account_id: int = Path(..., description="Account ID"),
    as_of: Optional[datetime] = Query(None, description="Only count transactions posted at or before this time"),
    cache: Optional[BalanceCache] = Depends(get_balance_cache),
    db: AsyncSession = Depends(get_db)
):
    """
    Balance derived from the ledger, signed by the account's normal side.
    """
    account = await LedgerStore.get_account(db, account_id)
    balance = await BalanceResolver.get_balance(db, account_id, as_of=as_of, cache=cache)
    return BalanceResponse(
        account_id=account.id,
        code=account.code,
        normal_side=account.normal_side,
        balance=balance,
        as_of=as_of,
    )
