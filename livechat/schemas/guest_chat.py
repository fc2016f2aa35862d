"""Response envelopes for the guest chat widget."""

from __future__ import annotations

from pydantic import BaseModel, Field

from livechat.schemas.conversation import ConversationRead
from livechat.schemas.guest_session import GuestSessionRead
from livechat.schemas.message import MessageRead


class GuestChatState(BaseModel):
    session: GuestSessionRead
    conversation: ConversationRead
    messages: list[MessageRead] = Field(default_factory=list)


class GuestMessageSent(BaseModel):
    message: MessageRead
    conversation: ConversationRead
