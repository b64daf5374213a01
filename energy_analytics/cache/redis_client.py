"""
Redis client for the site listing cache.

Caching is best-effort: connection or command failures are logged and
treated as a cache miss, so the API keeps answering without Redis.

CHANGELOG:
- 2026-10-15: Cache site listings per user (STORY-114)
- 2026-10-12: Initial creation (STORY-102)
"""

import json
import logging

import redis.asyncio as redis

logger = logging.getLogger(__name__)


def sites_cache_key(user_id: str) -> str:
    """Return the cache key for a user's site listing."""
    return f"sites:{user_id}"


async def get_redis(redis_url: str) -> redis.Redis:
    """Create and return an async Redis client for *redis_url*."""
    return redis.from_url(redis_url)


async def read_cached_json(redis_url: str, key: str) -> object | None:
    """Return the decoded JSON stored under *key*, or None on miss or failure."""
    try:
        client = await get_redis(redis_url)
        try:
            cached = await client.get(key)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis read failed for key %s", key, exc_info=True)
        return None

    if cached is None:
        return None
    try:
        return json.loads(cached)
    except ValueError:
        logger.warning("Discarding undecodable cache entry %s", key)
        return None


async def write_cached_json(redis_url: str, key: str, value: object, ttl_s: int) -> None:
    """Store *value* as JSON under *key* for *ttl_s* seconds (best-effort)."""
    try:
        client = await get_redis(redis_url)
        try:
            await client.set(key, json.dumps(value), ex=ttl_s)
        finally:
            await client.aclose()
    except Exception:
        logger.warning("Redis write failed for key %s", key, exc_info=True)
