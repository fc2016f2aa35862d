"""
Guest message throttling, one Redis counter per browser session.

The counter lives under GUEST_RATE_LIMIT_NAMESPACE and expires one window
after the first message it counts. Without a client or a configured limit
every message is allowed, and so is every message while Redis is down.
"""

from __future__ import annotations

import logging
from typing import Optional

import redis

from livechat.config import get_settings

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


def guest_counter_key(session_id: str, namespace: Optional[str] = None) -> str:
    namespace = namespace or get_settings().guest_rate_limit_namespace
    return f"{namespace}:{session_id}"


def check_guest_rate_limit(
    session_id: str,
    redis_client: Optional[redis.Redis],
    limit_per_minute: Optional[int],
    namespace: Optional[str] = None,
) -> bool:
    """Count one message for session_id; False once it is over the limit."""
    if redis_client is None or not limit_per_minute or limit_per_minute <= 0:
        return True
    key = guest_counter_key(session_id, namespace)
    try:
        sent = redis_client.incr(key)
        if sent == 1:
            redis_client.expire(key, WINDOW_SECONDS)
    except redis.RedisError as e:
        logger.warning("Guest rate limit unavailable for %s: %s", session_id, e)
        return True
    if sent > limit_per_minute:
        logger.info("Guest session %s sent %d messages this minute", session_id, sent)
        return False
    return True
