from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from livechat.auth.current_user import CurrentUser, get_current_user
from livechat.db import get_db
from livechat.models.conversation import Conversation
from livechat.models.message import Message
from livechat.services.conversation_service import ConversationService
from livechat.services.message_service import MessageService


def get_conversation_by_id(
    conversation_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Conversation:
    """FastAPI dependency to get a conversation the caller may access."""
    svc = ConversationService(db)
    conversation = svc.get_conversation(conversation_id)
    if conversation is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    svc.ensure_access(conversation, current_user)
    return conversation


def get_message_by_id(
    message_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Message:
    """FastAPI dependency to get a message whose conversation the caller may access."""
    message = MessageService(db).get_message(message_id)
    if message is None:
        raise HTTPException(status_code=404, detail="Message not found")
    conversation_svc = ConversationService(db)
    conversation = conversation_svc.require_conversation(message.conversation_id)
    conversation_svc.ensure_access(conversation, current_user)
    return message
