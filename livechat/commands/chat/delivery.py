"""Post-commit side effects shared by the chat commands."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional
from uuid import UUID

from livechat.config import get_settings
from livechat.core.broadcaster import (
    EVENT_MESSAGE_CREATED,
    Broadcaster,
    conversation_channel,
)
from livechat.core.notifier import StaffNotifier
from livechat.models.conversation import Conversation
from livechat.models.message import Message
from livechat.schemas.message import MessageRead

logger = logging.getLogger(__name__)


def truncate_preview(text: str, limit: Optional[int] = None) -> str:
    """Cut text to limit characters, marking the cut with '...'."""
    limit = limit or get_settings().chat_notification_preview_length
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


def conversation_link(conversation_id: UUID) -> str:
    template = get_settings().chat_conversation_link_template
    return template.format(conversation_id=conversation_id)


def broadcast_message(
    broadcaster: Broadcaster,
    message: Message,
    event: str = EVENT_MESSAGE_CREATED,
) -> None:
    """Publish a committed message to its conversation channel. Never raises."""
    try:
        payload = MessageRead.model_validate(message).model_dump(mode="json")
        broadcaster.publish(
            conversation_channel(message.conversation_id), event, payload
        )
    except Exception as e:
        logger.warning("Failed to broadcast message %s: %s", message.id, e)


def notify(
    notifier: StaffNotifier,
    recipients: Iterable[UUID],
    text: str,
    conversation: Conversation,
) -> None:
    """Hand notifications to the notifier. Never raises."""
    user_ids: List[UUID] = list(dict.fromkeys(recipients))
    if not user_ids:
        logger.debug("No recipients for conversation %s", conversation.id)
        return
    try:
        notifier(
            user_ids,
            text,
            link=conversation_link(conversation.id),
            conversation_id=conversation.id,
        )
    except Exception as e:
        logger.warning(
            "Failed to notify staff for conversation %s: %s", conversation.id, e
        )
