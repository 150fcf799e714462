"""
Balance Cache Service.

Redis-backed memo of account balances. Each value is stored with the
fingerprint of the log it was folded from (entry count and last transaction
id for the account). A value whose fingerprint no longer matches the log is
ignored, so the cache can always be thrown away and rebuilt.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from backend.app.core.config import settings

logger = logging.getLogger("fleet_ledger.cache")


class BalanceCache:

    KEY_PREFIX = "ledger:balance:"

    def __init__(self, redis_client: Any, ttl_seconds: int = None):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds or settings.balance_cache_ttl_seconds

    def _key(self, account_id: int) -> str:
        return f"{self.KEY_PREFIX}{account_id}"

    async def get(self, account_id: int) -> Optional[Dict[str, Any]]:
        raw = await self.redis.get(self._key(account_id))
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode()
        data = json.loads(raw)
        data["balance"] = Decimal(data["balance"])
        return data

    async def set(self, account_id: int, balance: Decimal, entry_count: int, last_transaction_id: Optional[int]):
        payload = json.dumps({
            "balance": str(balance),
            "entry_count": entry_count,
            "last_transaction_id": last_transaction_id,
        })
        await self.redis.set(self._key(account_id), payload, ex=self.ttl_seconds)

    async def invalidate(self, account_id: int):
        await self.redis.delete(self._key(account_id))
