"""
Balance Resolver Tests.

Balances are folded from the log; the Redis cache is only a memo.
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from backend.app.core.exceptions import NotFoundError
from backend.app.domain.ledger.balance_resolver import BalanceResolver
from backend.app.domain.ledger.events import EntryInput
from backend.app.domain.ledger.ledger_store import LedgerStore
from backend.app.models.ledger_enums import EntrySide
from backend.app.services.cache import BalanceCache


async def post(db, debit_account, credit_account, amount):
    transaction = await LedgerStore.append_transaction(
        db,
        [
            EntryInput(account_id=debit_account.id, side=EntrySide.DEBIT, amount=Decimal(amount)),
            EntryInput(account_id=credit_account.id, side=EntrySide.CREDIT, amount=Decimal(amount)),
        ],
    )
    await db.commit()
    return transaction


@pytest.mark.asyncio
async def test_empty_account_has_zero_balance(db_session, chart):
    assert await BalanceResolver.get_balance(db_session, chart["cash"].id) == Decimal("0.00")


@pytest.mark.asyncio
async def test_unknown_account(db_session, chart):
    with pytest.raises(NotFoundError):
        await BalanceResolver.get_balance(db_session, 777)


@pytest.mark.asyncio
async def test_balance_signed_by_normal_side(db_session, chart):
    await post(db_session, chart["cash"], chart["revenue"], "300.00")
    await post(db_session, chart["expense"], chart["cash"], "120.25")

    assert await BalanceResolver.get_balance(db_session, chart["cash"].id) == Decimal("179.75")
    assert await BalanceResolver.get_balance(db_session, chart["revenue"].id) == Decimal("300.00")
    assert await BalanceResolver.get_balance(db_session, chart["expense"].id) == Decimal("120.25")


@pytest.mark.asyncio
async def test_credit_normal_account_can_go_negative(db_session, chart):
    await post(db_session, chart["revenue"], chart["cash"], "15.00")

    assert await BalanceResolver.get_balance(db_session, chart["revenue"].id) == Decimal("-15.00")


@pytest.mark.asyncio
async def test_reversal_restores_prior_balance(db_session, chart):
    await post(db_session, chart["cash"], chart["revenue"], "50.00")
    mistake = await post(db_session, chart["cash"], chart["revenue"], "500.00")
    assert await BalanceResolver.get_balance(db_session, chart["cash"].id) == Decimal("550.00")

    await LedgerStore.reverse_transaction(db_session, mistake.id)
    await db_session.commit()

    assert await BalanceResolver.get_balance(db_session, chart["cash"].id) == Decimal("50.00")
    assert await BalanceResolver.get_balance(db_session, chart["revenue"].id) == Decimal("50.00")


@pytest.mark.asyncio
async def test_balance_as_of_point_in_time(db_session, chart):
    first = await post(db_session, chart["cash"], chart["revenue"], "40.00")
    second = await post(db_session, chart["cash"], chart["revenue"], "60.00")

    # Pin posting times so the cutoff is unambiguous
    first.posted_at = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)
    second.posted_at = datetime(2025, 2, 10, 12, 0, tzinfo=timezone.utc)
    await db_session.commit()

    before_any = datetime(2025, 1, 1, tzinfo=timezone.utc)
    between = datetime(2025, 1, 31, tzinfo=timezone.utc)
    after_all = datetime(2025, 3, 1, tzinfo=timezone.utc)

    cash_id = chart["cash"].id
    assert await BalanceResolver.get_balance(db_session, cash_id, as_of=before_any) == Decimal("0.00")
    assert await BalanceResolver.get_balance(db_session, cash_id, as_of=between) == Decimal("40.00")
    assert await BalanceResolver.get_balance(db_session, cash_id, as_of=after_all) == Decimal("100.00")

    # Non-UTC offsets are normalized before comparing
    dubai = timezone(timedelta(hours=4))
    just_before_first = datetime(2025, 1, 10, 15, 59, tzinfo=dubai)
    assert await BalanceResolver.get_balance(db_session, cash_id, as_of=just_before_first) == Decimal("0.00")


@pytest.mark.asyncio
async def test_fold_matches_sum_of_entries(db_session, chart):
    amounts = ["0.10", "0.20", "0.30", "1999.99", "0.01"]
    for amount in amounts:
        await post(db_session, chart["receivable"], chart["revenue"], amount)

    expected = sum(Decimal(a) for a in amounts)
    assert await BalanceResolver.get_balance(db_session, chart["receivable"].id) == expected


# Cache

@pytest.mark.asyncio
async def test_cache_populated_and_reused(db_session, chart, redis_client_session):
    cache = BalanceCache(redis_client_session, ttl_seconds=60)
    await post(db_session, chart["cash"], chart["revenue"], "25.00")

    balance = await BalanceResolver.get_balance(db_session, chart["cash"].id, cache=cache)
    cached = await cache.get(chart["cash"].id)

    assert balance == Decimal("25.00")
    assert cached["balance"] == Decimal("25.00")
    assert cached["entry_count"] == 1


@pytest.mark.asyncio
async def test_stale_cache_entry_is_ignored(db_session, chart, redis_client_session):
    cache = BalanceCache(redis_client_session, ttl_seconds=60)
    await post(db_session, chart["cash"], chart["revenue"], "25.00")
    await BalanceResolver.get_balance(db_session, chart["cash"].id, cache=cache)

    # New posting changes the fingerprint
    await post(db_session, chart["cash"], chart["revenue"], "5.00")

    assert await BalanceResolver.get_balance(db_session, chart["cash"].id, cache=cache) == Decimal("30.00")
    assert (await cache.get(chart["cash"].id))["balance"] == Decimal("30.00")


@pytest.mark.asyncio
async def test_historical_query_bypasses_cache(db_session, chart, redis_client_session):
    cache = BalanceCache(redis_client_session, ttl_seconds=60)
    await post(db_session, chart["cash"], chart["revenue"], "25.00")

    past = datetime(2000, 1, 1, tzinfo=timezone.utc)
    assert await BalanceResolver.get_balance(db_session, chart["cash"].id, as_of=past, cache=cache) == Decimal("0.00")
    assert await cache.get(chart["cash"].id) is None


@pytest.mark.asyncio
async def test_verify_cache_detects_corruption(db_session, chart, redis_client_session):
    cache = BalanceCache(redis_client_session, ttl_seconds=60)
    transaction = await post(db_session, chart["cash"], chart["revenue"], "25.00")
    await BalanceResolver.get_balance(db_session, chart["cash"].id, cache=cache)

    assert await BalanceResolver.verify_cache(db_session, chart["cash"].id, cache) is True

    await cache.set(chart["cash"].id, Decimal("999.00"), 1, transaction.id)

    assert await BalanceResolver.verify_cache(db_session, chart["cash"].id, cache) is False
    assert await cache.get(chart["cash"].id) is None


@pytest.mark.asyncio
async def test_rebuild_cache_covers_every_account(db_session, chart, redis_client_session):
    cache = BalanceCache(redis_client_session, ttl_seconds=60)
    await post(db_session, chart["cash"], chart["revenue"], "10.00")

    rebuilt = await BalanceResolver.rebuild_cache(db_session, cache)

    assert rebuilt == len(chart)
    for account in chart.values():
        assert await cache.get(account.id) is not None
    assert (await cache.get(chart["revenue"].id))["balance"] == Decimal("10.00")
