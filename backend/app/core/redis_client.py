"""
Redis connection for the account balance cache.

The cache is a memo only: balances are always derivable from the ledger,
so a missing or unreachable Redis degrades to folding the log and never
fails a request.
"""

import redis.asyncio as redis
from backend.app.core.config import settings


redis_client = redis.from_url(
    settings.redis_url,
    decode_responses=settings.redis_decode_responses,
)


async def get_redis():
    """FastAPI dependency feeding BalanceCache in the balance endpoints."""
    return redis_client


async def ping_redis() -> bool:
    """Reachability of the balance cache backend, reported by /health."""
    try:
        return await redis_client.ping()
    except redis.RedisError:
        return False


async def close_redis():
    """Release the connection pool. Called on app shutdown and by ops scripts."""
    await redis_client.aclose()
