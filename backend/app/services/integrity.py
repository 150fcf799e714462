"""
Ledger Integrity Service.

Whole-ledger sweep for operators, run by verify_ledger.py:

- transactions whose entries do not balance
- invoices whose cached paid amount or status drifted from the ledger
- balance cache entries that no longer match a fold of the log
"""

import logging
from typing import List, NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.domain.invoicing.invoice_lifecycle import InvoiceLifecycleManager
from backend.app.domain.ledger.balance_resolver import BalanceResolver
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.models.invoice import Invoice
from backend.app.models.invoice_enums import InvoiceStatus
from backend.app.services.cache import BalanceCache

logger = logging.getLogger("fleet_ledger.integrity")


class IntegrityReport(NamedTuple):
    unbalanced_transaction_ids: List[int]
    drifted_invoice_ids: List[int]
    repaired_invoice_ids: List[int]
    stale_cache_account_ids: List[int]
    cache_entries_rebuilt: Optional[int]

    @property
    def healthy(self) -> bool:
        # Stale cache entries are dropped during the sweep
        unrepaired = set(self.drifted_invoice_ids) - set(self.repaired_invoice_ids)
        return not (self.unbalanced_transaction_ids or unrepaired)


async def run_integrity_check(
    db: AsyncSession,
    cache: Optional[BalanceCache] = None,
    repair_invoices: bool = False,
    rebuild_cache: bool = False,
    actor: Optional[str] = None,
) -> IntegrityReport:
    """
    Sweep the ledger and report every inconsistency found.

    Args:
        db: Database session
        cache: Balance cache to verify; skipped when None
        repair_invoices: Overwrite drifted invoice caches from the ledger
        rebuild_cache: Refold every account into the cache after verifying it
        actor: Recorded on invoice repair audit entries
    """
    unbalanced = await LedgerStore.find_unbalanced_transactions(db)

    result = await db.execute(
        select(Invoice.id).where(Invoice.status != InvoiceStatus.DRAFT).order_by(Invoice.id)
    )
    drifted, repaired = [], []
    for invoice_id in list(result.scalars().all()):
        reconciliation = await InvoiceLifecycleManager.reconcile(
            db, invoice_id, repair=repair_invoices, actor=actor
        )
        if not reconciliation.consistent:
            drifted.append(invoice_id)
        if reconciliation.repaired:
            repaired.append(invoice_id)

    stale, rebuilt = [], None
    if cache is not None:
        for account in await LedgerStore.list_accounts(db):
            if not await BalanceResolver.verify_cache(db, account.id, cache):
                stale.append(account.id)
        if rebuild_cache:
            rebuilt = await BalanceResolver.rebuild_cache(db, cache)

    report = IntegrityReport(unbalanced, drifted, repaired, stale, rebuilt)
    log = logger.info if report.healthy else logger.error
    log(
        "Integrity check finished",
        extra={
            "unbalanced": len(unbalanced),
            "drifted_invoices": len(drifted),
            "repaired_invoices": len(repaired),
            "stale_cache_entries": len(stale),
            "cache_entries_rebuilt": rebuilt,
        },
    )
    return report
