"""
Command for an anonymous visitor sending a chat message.

Binds the browser session to a guest, opens the guest's conversation on first
contact, stores the message, then broadcasts it and notifies staff.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple
from uuid import UUID

import redis
from sqlalchemy.orm import Session

from livechat.commands.chat.delivery import broadcast_message, notify, truncate_preview
from livechat.config import get_settings
from livechat.constants.chat import GUEST_MESSAGE_TYPES, MessageType
from livechat.core.broadcaster import Broadcaster
from livechat.core.notifier import StaffNotifier
from livechat.core.owner import OwnerRef
from livechat.exceptions import RateLimitedError, ValidationError
from livechat.models.conversation import Conversation
from livechat.models.message import Message
from livechat.schemas.message import Attachment
from livechat.services.conversation_service import ConversationService
from livechat.services.guest_session_service import GuestSessionService
from livechat.services.message_service import MessageService
from livechat.utils.rate_limit import check_guest_rate_limit

logger = logging.getLogger(__name__)


class SendGuestMessageCommand:
    def __init__(
        self,
        db: Session,
        broadcaster: Broadcaster,
        notifier: StaffNotifier,
        redis_client: Optional[redis.Redis] = None,
    ) -> None:
        self.db = db
        self.broadcaster = broadcaster
        self.notifier = notifier
        self.redis_client = redis_client
        self.settings = get_settings()
        self.guest_session_service = GuestSessionService(db)
        self.conversation_service = ConversationService(db)
        self.message_service = MessageService(db)

    def execute(
        self,
        session_id: str,
        body: str,
        message_type: str | MessageType = MessageType.TEXT,
        attachments: Iterable[Attachment | Mapping[str, Any]] = (),
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[Message, Conversation]:
        """
        Store a guest message and return it with its conversation.

        Raises:
            RateLimitedError: the session exceeded its per-minute budget.
            ValidationError: type not allowed for guests, empty or oversized
                body, oversized attachment.
        """
        try:
            msg_type = MessageType(message_type)
        except ValueError as e:
            raise ValidationError(f"Invalid message type {message_type!r}") from e
        if msg_type not in GUEST_MESSAGE_TYPES:
            raise ValidationError(f"Guests cannot send {msg_type.value} messages")
        # Reject before any guest or conversation row is written.
        self.message_service.validate_body(body)
        attachment_rows = self.message_service.validate_attachments(attachments)

        if not check_guest_rate_limit(
            session_id, self.redis_client, self.settings.guest_rate_limit_per_minute
        ):
            logger.info("Guest session %s rate limited", session_id)
            raise RateLimitedError("Too many messages, please slow down")

        guest, _ = self.guest_session_service.get_or_create(
            session_id, ip_address=ip_address, user_agent=user_agent
        )
        guest = self.guest_session_service.touch_activity(guest.id)
        conversation, _ = self.conversation_service.get_or_create_for_guest(guest)

        message = self.message_service.append(
            conversation.id,
            sender=OwnerRef.guest(guest.id),
            body=body,
            message_type=msg_type,
            attachments=attachment_rows,
            sender_id=None,
            metadata={
                "guest_session_id": str(guest.id),
                "guest_name": guest.guest_name,
                "guest_email": guest.guest_email,
                "ip_address": ip_address,
            },
        )
        self.db.refresh(conversation)

        broadcast_message(self.broadcaster, message)
        notify(
            self.notifier,
            self._recipients(conversation),
            f"New guest message from {guest.display_name}: "
            f"{truncate_preview(message.body)}",
            conversation,
        )
        return message, conversation

    def _recipients(self, conversation: Conversation) -> List[UUID]:
        """Assignee first; else everyone in the conversation; else configured staff."""
        if conversation.assigned_to is not None:
            return [conversation.assigned_to]
        if conversation.participants:
            return conversation.participant_ids
        return self.settings.staff_user_ids
