"""
Request dependencies for FastAPI.

Authentication is handled upstream; the ledger only records who acted.
"""

from typing import Optional
from fastapi import Depends, Header
from backend.app.core.config import settings
from backend.app.core.redis_client import get_redis
from backend.app.services.cache import BalanceCache


async def get_actor(x_actor: Optional[str] = Header(None, max_length=100)) -> Optional[str]:
    """
    Actor identifier forwarded by the API gateway in the X-Actor header.
    
    Returns None for anonymous/system calls. Stored in the audit log only.
    """
    return x_actor


async def get_balance_cache(redis_client=Depends(get_redis)) -> Optional[BalanceCache]:
    """
    Balance cache backed by Redis, or None when disabled in settings.
    """
    if not settings.balance_cache_enabled:
        return None
    return BalanceCache(redis_client)
