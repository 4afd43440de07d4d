import json
import logging
from typing import Any, Awaitable, Callable, Optional

from redis.asyncio import Redis

from .config import settings

logger = logging.getLogger("cafe_console.cache")

# Query families. A family is invalidated as a whole after a mutation.
BOOKINGS = "cafe-bookings"
SLOTS = "cafe-slots-manage"
REDEEMS = "cafe-redeems"
ITEMS = "items"
NOTIFICATIONS = "booking-notifications"
CAFE = "cafe"


def cache_key(family: str, scope: Any, *parts: Any) -> str:
    suffix = ":".join("" if p is None else str(p) for p in parts)
    return f"{family}:{scope}:{suffix}" if parts else f"{family}:{scope}"


def generation_key(family: str, scope: Any) -> str:
    # Kept outside the family's key space so invalidate() never deletes it
    return f"generation:{family}:{scope}"


class QueryCache:
    """
    Read-through cache for API read results.

    Entries are never patched in place. After a successful mutation the family
    for that scope (usually a café) moves to a new generation, and every entry
    key carries the generation it was read under. A read that was already in
    flight when the mutation happened writes back under the old generation,
    where nothing looks any more.

    A Redis outage degrades to "no cache" and never fails a command.
    """

    def __init__(self, redis_client: Optional[Redis], ttl: int = settings.CACHE_TTL_SECONDS):
        self.redis = redis_client
        self.ttl = ttl

    async def _entry_key(self, family: str, scope: Any, parts: tuple) -> Optional[str]:
        if self.redis is None:
            return None
        try:
            generation = await self.redis.get(generation_key(family, scope))
        except Exception as e:
            logger.error(f"Cache unavailable for {family}:{scope}: {e}")
            return None
        return cache_key(family, scope, f"g{generation or 0}", *parts)

    async def get_or_fetch(self, fetch: Callable[[], Awaitable[Any]], family: str, scope: Any, *parts: Any) -> Any:
        key = await self._entry_key(family, scope, parts)

        if key is not None:
            try:
                cached = await self.redis.get(key)
                if cached:
                    return json.loads(cached)
            except Exception as e:
                logger.error(f"Cache read failed for {key}: {e}")

        data = await fetch()

        if key is not None:
            try:
                await self.redis.set(key, json.dumps(data, default=str), ex=self.ttl)
            except Exception as e:
                logger.error(f"Cache write failed for {key}: {e}")
        return data

    async def invalidate(self, family: str, scope: Any) -> None:
        if self.redis is None:
            return
        prefix = cache_key(family, scope)
        try:
            await self.redis.incr(generation_key(family, scope))
            # Old generations are unreachable now; drop them rather than wait for the TTL
            keys = [key async for key in self.redis.scan_iter(match=f"{prefix}:*")]
            if keys:
                await self.redis.delete(*keys)
            logger.info(f"Invalidated cache for {prefix}")
        except Exception as e:
            logger.error(f"Failed to invalidate cache for {prefix}: {e}")
