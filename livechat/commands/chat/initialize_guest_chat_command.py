"""Command that opens (or resumes) the chat widget for a browser session."""

from __future__ import annotations

from typing import Optional

from sqlalchemy.orm import Session

from livechat.config import get_settings
from livechat.schemas.conversation import ConversationRead
from livechat.schemas.guest_chat import GuestChatState
from livechat.schemas.guest_session import GuestSessionRead
from livechat.schemas.message import MessageRead
from livechat.services.conversation_service import ConversationService
from livechat.services.guest_session_service import GuestSessionService
from livechat.services.message_service import MessageService


class InitializeGuestChatCommand:
    def __init__(self, db: Session) -> None:
        self.db = db
        self.guest_session_service = GuestSessionService(db)
        self.conversation_service = ConversationService(db)
        self.message_service = MessageService(db)

    def execute(
        self,
        session_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> GuestChatState:
        """Guest, conversation and visible history (oldest first, no internal notes)."""
        guest, _ = self.guest_session_service.get_or_create(
            session_id, ip_address=ip_address, user_agent=user_agent
        )
        guest = self.guest_session_service.touch_activity(guest.id)
        conversation, _ = self.conversation_service.get_or_create_for_guest(guest)
        messages = self.message_service.get_messages(
            conversation.id,
            limit=get_settings().guest_history_limit,
            include_internal=False,
        )
        return GuestChatState(
            session=GuestSessionRead.model_validate(guest),
            conversation=ConversationRead.model_validate(conversation),
            messages=[MessageRead.model_validate(m) for m in messages],
        )
