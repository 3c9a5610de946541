"""Redis client factory — used for the reconciliation lease only.

Market and transaction state never lives in Redis (those go through PostgreSQL).
"""

import redis.asyncio as aioredis

from config.settings import settings

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis:
    """Get or create the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        _redis_pool = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
        )
    return _redis_pool


async def close_redis() -> None:
    """Close the Redis connection pool."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None


async def acquire_lease(key: str, owner: str, ttl_seconds: int) -> bool:
    """SET NX EX — True when this owner now holds the lease."""
    redis = await get_redis()
    return bool(await redis.set(key, owner, nx=True, ex=ttl_seconds))


_RELEASE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


async def release_lease(key: str, owner: str) -> None:
    """Delete the lease only if this owner still holds it."""
    redis = await get_redis()
    await redis.eval(_RELEASE_SCRIPT, 1, key, owner)
