import argparse
import asyncio
import sys

from backend.app.core.config import settings
from backend.app.core.observability import configure_logging
from backend.app.core.redis_client import close_redis, ping_redis, redis_client
from backend.app.db.session import AsyncSessionLocal, engine
from backend.app.services.cache import BalanceCache
from backend.app.services.integrity import run_integrity_check


def parse_args():
    parser = argparse.ArgumentParser(description="Sweep the ledger for inconsistencies.")
    parser.add_argument("--repair", action="store_true", help="Overwrite drifted invoice caches from the ledger")
    parser.add_argument("--rebuild-cache", action="store_true", help="Refold every account into the balance cache")
    return parser.parse_args()


async def check_ledger(repair, rebuild):
    cache = None
    if settings.balance_cache_enabled:
        if await ping_redis():
            cache = BalanceCache(redis_client)
        else:
            print("⚠️  Redis unreachable, skipping balance cache checks")

    try:
        async with AsyncSessionLocal() as db:
            report = await run_integrity_check(
                db, cache=cache, repair_invoices=repair, rebuild_cache=rebuild, actor="verify_ledger"
            )
    finally:
        await close_redis()
        await engine.dispose()

    print(f"Unbalanced transactions: {report.unbalanced_transaction_ids or 'none'}")
    print(f"Drifted invoices: {report.drifted_invoice_ids or 'none'}")
    if repair:
        print(f"Repaired invoices: {report.repaired_invoice_ids or 'none'}")
    if cache is not None:
        print(f"Stale cache entries dropped: {report.stale_cache_account_ids or 'none'}")
    if report.cache_entries_rebuilt is not None:
        print(f"Cache entries rebuilt: {report.cache_entries_rebuilt}")

    if report.healthy:
        print("✅ Ledger is consistent")
        return 0
    print("❌ Ledger integrity problems found")
    return 1


if __name__ == "__main__":
    configure_logging()
    args = parse_args()
    sys.exit(asyncio.run(check_ledger(args.repair, args.rebuild_cache)))
