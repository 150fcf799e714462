"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from backend.app.api.v1.endpoints import accounts, transactions, invoices, registry

router = APIRouter()

# Chart of accounts and balances
router.include_router(accounts.router)

# Ledger postings and reversals
router.include_router(transactions.router)

# Invoice lifecycle
router.include_router(invoices.router)

# Read-only reference data
router.include_router(registry.router)
