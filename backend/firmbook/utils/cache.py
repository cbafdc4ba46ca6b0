"""Redis caching utilities for Firmbook.

Reference tables (firms, tax rates, HSN/SAC codes, sales items,
engagement types) are read on almost every billing request and change
rarely, so their raw documents are cached in Redis. Writes through the
masters API invalidate the ``masters:*`` keys.

Caching is skipped entirely when ``settings.cache_enabled`` is false,
and a Redis outage degrades to uncached reads.
"""

import functools
import hashlib
import json
import logging
from datetime import date, datetime
from typing import Callable, Optional

import redis.asyncio as redis

from firmbook.config import settings

logger = logging.getLogger(__name__)

# Global Redis connection pool
_redis_client: Optional[redis.Redis] = None


async def get_redis() -> redis.Redis:
    """Get or create Redis client connection."""
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=20,
        )
    return _redis_client


async def close_redis():
    """Close Redis connection (call on app shutdown)."""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None


def cache_key(**kwargs) -> str:
    """Deterministic hash of keyword arguments."""
    if not kwargs:
        return "default"
    key_data = json.dumps(kwargs, sort_keys=True)
    return hashlib.md5(key_data.encode()).hexdigest()


def _key_kwargs(kwargs: dict) -> dict:
    # Only plain values take part in the key; injected objects are skipped
    out = {}
    for k, v in kwargs.items():
        if k.startswith("_"):
            continue
        if isinstance(v, (int, str, bool, float, type(None))):
            out[k] = v
        elif isinstance(v, (date, datetime)):
            out[k] = v.isoformat()
    return out


def cached(ttl: int | None = None, prefix: str = "cache"):
    """Decorator to cache JSON-serialisable results in Redis.

    Positional arguments (the document store, sessions) are not part of
    the key; pass everything that distinguishes results as keywords.

    Example:
        @cached(prefix="masters")
        async def fetch_reference(store, *, collection: str) -> list[dict]:
            return await store.query(collection)

    Cache keys: {prefix}:{function_name}:{kwargs_hash}
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            if not settings.cache_enabled:
                return await func(*args, **kwargs)

            key = f"{prefix}:{func.__name__}:{cache_key(**_key_kwargs(kwargs))}"
            try:
                redis_client = await get_redis()
                cached_value = await redis_client.get(key)
                if cached_value is not None:
                    logger.debug("Cache HIT: %s", key)
                    return json.loads(cached_value)

                logger.debug("Cache MISS: %s", key)
                result = await func(*args, **kwargs)
                await redis_client.setex(
                    key,
                    ttl or settings.cache_ttl_seconds,
                    json.dumps(result, default=str),
                )
                return result
            except redis.RedisError as e:
                logger.warning("Redis error (falling back to uncached): %s", e)
                return await func(*args, **kwargs)

        return wrapper

    return decorator


async def invalidate_cache(pattern: str):
    """Delete cache keys matching a pattern, e.g. ``masters:*``."""
    if not settings.cache_enabled:
        return
    try:
        redis_client = await get_redis()
        keys = [key async for key in redis_client.scan_iter(match=pattern)]
        if keys:
            await redis_client.delete(*keys)
            logger.info("Invalidated %d cache keys matching %s", len(keys), pattern)
    except redis.RedisError as e:
        logger.warning("Failed to invalidate cache: %s", e)
