"""Command for a staff member (or customer) posting into a conversation."""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from sqlalchemy.orm import Session

from livechat.auth.current_user import CurrentUser
from livechat.commands.chat.delivery import broadcast_message, notify, truncate_preview
from livechat.core.broadcaster import Broadcaster
from livechat.core.notifier import StaffNotifier
from livechat.models.conversation import Conversation
from livechat.models.message import Message
from livechat.schemas.message import MessageCreate
from livechat.services.conversation_service import ConversationService
from livechat.services.message_service import MessageService

logger = logging.getLogger(__name__)


class SendStaffMessageCommand:
    def __init__(
        self,
        db: Session,
        broadcaster: Broadcaster,
        notifier: StaffNotifier,
    ) -> None:
        self.db = db
        self.broadcaster = broadcaster
        self.notifier = notifier
        self.conversation_service = ConversationService(db)
        self.message_service = MessageService(db)

    def execute(
        self, conversation_id: UUID, user: CurrentUser, data: MessageCreate
    ) -> Message:
        conversation = self.conversation_service.require_conversation(
            conversation_id
        )
        self.conversation_service.ensure_access(conversation, user)

        message = self.message_service.append(
            conversation.id,
            sender=conversation.owner,
            body=data.body,
            message_type=data.message_type,
            attachments=data.attachments,
            metadata=data.metadata,
            sender_id=user.id,
            recipient_id=data.recipient_id,
            reply_to_id=data.reply_to_id,
            is_internal_note=data.is_internal_note,
        )
        self.db.refresh(conversation)

        broadcast_message(self.broadcaster, message)
        notify(
            self.notifier,
            self._recipients(conversation, user.id),
            f"New message in {conversation.title or 'a conversation'}: "
            f"{truncate_preview(message.body)}",
            conversation,
        )
        return message

    @staticmethod
    def _recipients(conversation: Conversation, sender_id: UUID) -> List[UUID]:
        recipients = list(conversation.participant_ids)
        if conversation.assigned_to is not None:
            recipients.append(conversation.assigned_to)
        return [u for u in recipients if u != sender_id]
