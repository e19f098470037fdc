"""Lightweight Redis cache utilities for receipt history pages.

Usage guidelines:
- Caching is active only when ``REDIS_URL`` is configured and
  ``HISTORY_CACHE_TTL`` is positive.
- Keys are always namespaced with the user id.
- Invalidate on mutations (a successful ingestion clears that user's pages).
- Cache faults never fail a request; every helper degrades to a miss.
"""
from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Optional

from redis import asyncio as aioredis

from expense_tracker.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[aioredis.Redis] = None
_lock = asyncio.Lock()


def cache_enabled() -> bool:
    return bool(settings.REDIS_URL) and settings.HISTORY_CACHE_TTL > 0


async def get_redis() -> Optional[aioredis.Redis]:
    """Return a singleton async Redis client or None if caching is off."""
    global _redis_client
    if not cache_enabled():
        return None
    if _redis_client is not None:
        return _redis_client
    async with _lock:
        if _redis_client is None:
            _redis_client = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


def set_redis_client(client: Optional[aioredis.Redis]) -> None:
    """Replace the shared client (used at shutdown and by tests)."""
    global _redis_client
    _redis_client = client


async def cache_get_json(key: str) -> Optional[Any]:
    client = await get_redis()
    if not client:
        return None
    try:
        raw = await client.get(key)
    except Exception as exc:
        logger.warning("[cache] get failed key=%s err=%s", key, exc)
        return None
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


async def cache_set_json(key: str, value: Any, ttl: int) -> None:
    client = await get_redis()
    if not client:
        return
    try:
        await client.set(key, json.dumps(value), ex=ttl)
    except Exception as exc:
        logger.warning("[cache] set failed key=%s err=%s", key, exc)


async def cache_delete_pattern(pattern: str) -> None:
    """Best-effort pattern deletion (SCAN + DEL). Avoid for hot paths."""
    client = await get_redis()
    if not client:
        return
    try:
        keys = [key async for key in client.scan_iter(match=pattern)]
        if keys:
            await client.delete(*keys)
    except Exception as exc:
        logger.warning("[cache] invalidate failed pattern=%s err=%s", pattern, exc)


def history_cache_key(user_id: str, page: int, limit: int) -> str:
    return f"receipts:history:{user_id}:{page}:{limit}"


async def invalidate_receipt_history(user_id: str) -> None:
    await cache_delete_pattern(f"receipts:history:{user_id}:*")
