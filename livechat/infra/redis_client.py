"""Shared synchronous Redis client (rate limits, realtime broadcast)."""

from __future__ import annotations

from typing import Optional

import redis

from livechat.config import get_settings

_redis_client: Optional[redis.Redis] = None


def get_redis() -> redis.Redis:
    """Lazily build one client per process; connections are pooled by redis-py."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = redis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            decode_responses=True,
        )
    return _redis_client


def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None
