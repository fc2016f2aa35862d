"""
Realtime fan-out of conversation events over Redis pub/sub.

Publishing is fire-and-forget: a failed publish is logged and never undoes
the committed write that triggered it.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Protocol
from uuid import UUID

import redis

from livechat.config import get_settings
from livechat.infra.redis_client import get_redis

logger = logging.getLogger(__name__)

EVENT_MESSAGE_CREATED = "message.created"
EVENT_MESSAGE_UPDATED = "message.updated"
EVENT_MESSAGE_DELETED = "message.deleted"
EVENT_REACTIONS_UPDATED = "message.reactions"
EVENT_CONVERSATION_READ = "conversation.read"
EVENT_USER_TYPING = "user.typing"


def conversation_channel(conversation_id: UUID, prefix: Optional[str] = None) -> str:
    prefix = prefix or get_settings().realtime_channel_prefix
    return f"{prefix}.{conversation_id}"


class Broadcaster(Protocol):
    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        ...


class NullBroadcaster:
    """Used when realtime delivery is disabled."""

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        logger.debug("Realtime disabled; dropping %s on %s", event, channel)


class RedisBroadcaster:
    def __init__(self, client: redis.Redis) -> None:
        self.client = client

    def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        data = json.dumps({"event": event, "data": payload}, default=str)
        try:
            self.client.publish(channel, data)
        except redis.RedisError as e:
            logger.warning("Failed to publish %s on %s: %s", event, channel, e)


def get_broadcaster() -> Broadcaster:
    """FastAPI dependency; overridden in tests."""
    if not get_settings().realtime_enabled:
        return NullBroadcaster()
    return RedisBroadcaster(get_redis())
