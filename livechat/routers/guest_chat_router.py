"""Guest chat widget API: session, guest info, send and list messages."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from livechat.auth.current_user import get_guest_session_id
from livechat.commands.chat.initialize_guest_chat_command import (
    InitializeGuestChatCommand,
)
from livechat.commands.chat.send_guest_message_command import (
    SendGuestMessageCommand,
)
from livechat.config import get_settings
from livechat.core.broadcaster import Broadcaster, get_broadcaster
from livechat.core.notifier import StaffNotifier, get_staff_notifier
from livechat.db import get_db
from livechat.infra.redis_client import get_redis
from livechat.schemas.conversation import ConversationRead
from livechat.schemas.guest_chat import GuestChatState, GuestMessageSent
from livechat.schemas.guest_session import GuestInfoUpdate, GuestSessionRead
from livechat.schemas.message import GuestMessageCreate, MessageRead
from livechat.services.conversation_service import ConversationService
from livechat.services.guest_session_service import GuestSessionService
from livechat.services.message_service import MessageService

guest_chat_router = APIRouter(prefix="/guest-chat", tags=["Guest Chat"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_rate_limit_redis():
    """Redis client for guest rate limiting; None when limiting is off."""
    if get_settings().guest_rate_limit_per_minute is None:
        return None
    return get_redis()


@guest_chat_router.post("/session", response_model=GuestChatState)
def initialize_session(
    request: Request,
    session_id: str = Depends(get_guest_session_id),
    db: Session = Depends(get_db),
) -> GuestChatState:
    """Create or resume the guest's session and conversation."""
    command = InitializeGuestChatCommand(db)
    return command.execute(
        session_id,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


@guest_chat_router.patch("/session", response_model=GuestSessionRead)
def update_guest_info(
    data: GuestInfoUpdate,
    session_id: str = Depends(get_guest_session_id),
    db: Session = Depends(get_db),
) -> GuestSessionRead:
    svc = GuestSessionService(db)
    guest = svc.get_by_session_id(session_id)
    if guest is None:
        raise HTTPException(status_code=404, detail="Guest session not found")
    return GuestSessionRead.model_validate(svc.update_guest_info(guest.id, data))


@guest_chat_router.post("/messages", response_model=GuestMessageSent, status_code=201)
def send_guest_message(
    data: GuestMessageCreate,
    request: Request,
    session_id: str = Depends(get_guest_session_id),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    notifier: StaffNotifier = Depends(get_staff_notifier),
    redis_client=Depends(get_rate_limit_redis),
    db: Session = Depends(get_db),
) -> GuestMessageSent:
    """Send a message as the guest; opens the conversation on first contact."""
    command = SendGuestMessageCommand(
        db, broadcaster=broadcaster, notifier=notifier, redis_client=redis_client
    )
    message, conversation = command.execute(
        session_id,
        body=data.body,
        message_type=data.message_type,
        attachments=data.attachments,
        ip_address=_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return GuestMessageSent(
        message=MessageRead.model_validate(message),
        conversation=ConversationRead.model_validate(conversation),
    )


@guest_chat_router.get("/messages", response_model=List[MessageRead])
def list_guest_messages(
    session_id: str = Depends(get_guest_session_id),
    db: Session = Depends(get_db),
) -> List[MessageRead]:
    """Visible history of the guest's conversation, oldest first."""
    guest = GuestSessionService(db).get_by_session_id(session_id)
    if guest is None:
        raise HTTPException(status_code=404, detail="Guest session not found")
    conversation = ConversationService(db).get_for_guest(guest.id)
    if conversation is None:
        return []
    messages = MessageService(db).get_messages(
        conversation.id,
        limit=get_settings().guest_history_limit,
        include_internal=False,
    )
    return [MessageRead.model_validate(m) for m in messages]
