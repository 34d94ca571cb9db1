"""Per-client fixed-window quotas for purchase, subscribe and generation endpoints.

Counters live in Redis so every worker shares them. While Redis is unreachable each
process falls back to its own in-memory windows, which are purged once they expire.
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import HTTPException, Request
import redis.asyncio as redis

from config import settings


logger = logging.getLogger(__name__)

KEY_PREFIX = "ideaflow:rate"

# key -> (count, window reset timestamp)
_local_counters: Dict[str, Tuple[int, float]] = {}
_local_lock = asyncio.Lock()
_redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis_client


def _client_identifier(request: Request) -> str:
    if request.client and request.client.host:
        return request.client.host
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return "unknown"


def _purge_expired(now: float) -> None:
    expired = [key for key, (_, reset_at) in _local_counters.items() if reset_at <= now]
    for key in expired:
        del _local_counters[key]


async def _consume_local_quota(
    key: str,
    limit: int,
    window_seconds: int,
    now: Optional[float] = None,
) -> Tuple[bool, float]:
    """Count one hit against the in-process window. Returns (allowed, seconds until reset)."""
    now = time.time() if now is None else now
    async with _local_lock:
        _purge_expired(now)
        count, reset_at = _local_counters.get(key, (0, now + window_seconds))
        count += 1
        _local_counters[key] = (count, reset_at)
        return count <= limit, reset_at - now


async def _consume_redis_quota(key: str, limit: int, window_seconds: int) -> Tuple[bool, float]:
    client = get_redis_client()
    current = await client.incr(key)
    if current == 1:
        await client.expire(key, window_seconds)
        ttl = window_seconds
    else:
        ttl = await client.ttl(key)
        if ttl < 0:
            # The key lost its expiry (e.g. a crash between INCR and EXPIRE).
            await client.expire(key, window_seconds)
            ttl = window_seconds
    return current <= limit, float(ttl)


def rate_limit(prefix: str, limit: int, window_seconds: int) -> Callable[..., object]:
    """Return a FastAPI dependency that allows ``limit`` calls per client per window."""

    async def _dependency(request: Request) -> None:
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        key = f"{KEY_PREFIX}:{prefix}:{_client_identifier(request)}"
        try:
            allowed, retry_after = await _consume_redis_quota(key, limit, window_seconds)
        except (redis.RedisError, OSError) as exc:
            logger.warning("Rate limiter falling back to in-process counters: %s", exc)
            allowed, retry_after = await _consume_local_quota(key, limit, window_seconds)

        if not allowed:
            logger.info("Rate limit exceeded key=%s limit=%s", key, limit)
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded for {prefix}. Try again later.",
                headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
            )

    return _dependency
