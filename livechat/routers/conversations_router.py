"""Conversations API for staff and customers."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from livechat.auth.current_user import CurrentUser, get_current_user
from livechat.commands.chat.send_staff_message_command import SendStaffMessageCommand
from livechat.constants.chat import (
    ConversationPriority,
    ConversationStatus,
    OwnerKind,
)
from livechat.core.broadcaster import (
    EVENT_CONVERSATION_READ,
    EVENT_USER_TYPING,
    Broadcaster,
    conversation_channel,
    get_broadcaster,
)
from livechat.core.notifier import StaffNotifier, get_staff_notifier
from livechat.core.owner import OwnerRef
from livechat.db import get_db
from livechat.models.conversation import Conversation
from livechat.routers.utils.dependencies import get_conversation_by_id
from livechat.schemas.conversation import (
    AssignRequest,
    ConversationCreate,
    ConversationFilters,
    ConversationRead,
    ConversationUpdate,
    ConversationWithMessage,
    FindOrCreateRequest,
    MarkReadResult,
    TypingRequest,
)
from livechat.schemas.message import MessageCreate, MessageRead
from livechat.services.conversation_service import ConversationService
from livechat.services.message_service import MessageService

conversations_router = APIRouter(prefix="/conversations", tags=["Conversation"])


@conversations_router.get("", response_model=Page[ConversationRead])
def list_conversations(
    params: Params = Depends(),
    status: Optional[ConversationStatus] = Query(None),
    priority: Optional[ConversationPriority] = Query(None),
    assigned_to: Optional[UUID] = Query(None),
    owner_kind: Optional[OwnerKind] = Query(None),
    participant: Optional[UUID] = Query(None),
    search: Optional[str] = Query(None, max_length=255),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[ConversationRead]:
    """List conversations, most recent activity first."""
    filters = ConversationFilters(
        status=status,
        priority=priority,
        assigned_to=assigned_to,
        owner_kind=owner_kind,
        participant=participant,
        search=search,
    )
    query = ConversationService(db).get_conversations_query(filters, current_user)
    return paginate(query, params=params)


@conversations_router.post("", response_model=ConversationWithMessage, status_code=201)
def create_conversation(
    data: ConversationCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConversationWithMessage:
    conversation, message = ConversationService(db).create_conversation(
        data, created_by=current_user.id
    )
    return ConversationWithMessage(
        conversation=ConversationRead.model_validate(conversation),
        message=MessageRead.model_validate(message) if message else None,
    )


@conversations_router.post("/find-or-create", response_model=ConversationRead)
def find_or_create_conversation(
    data: FindOrCreateRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ConversationRead:
    """Open (or join) the active conversation about a client, lead or project."""
    conversation, _ = ConversationService(db).get_or_create_for_owner(
        OwnerRef.of(data.owner.kind, data.owner.id),
        current_user.id,
        title=data.title,
    )
    return ConversationRead.model_validate(conversation)


@conversations_router.get("/{conversation_id}", response_model=ConversationRead)
def get_conversation(
    conversation: Conversation = Depends(get_conversation_by_id),
) -> ConversationRead:
    return ConversationRead.model_validate(conversation)


@conversations_router.patch("/{conversation_id}", response_model=ConversationRead)
def update_conversation(
    data: ConversationUpdate,
    conversation: Conversation = Depends(get_conversation_by_id),
    db: Session = Depends(get_db),
) -> ConversationRead:
    updated = ConversationService(db).update_conversation(conversation.id, data)
    return ConversationRead.model_validate(updated)


@conversations_router.post(
    "/{conversation_id}/messages", response_model=MessageRead, status_code=201
)
def send_message(
    data: MessageCreate,
    conversation_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    notifier: StaffNotifier = Depends(get_staff_notifier),
    db: Session = Depends(get_db),
) -> MessageRead:
    command = SendStaffMessageCommand(db, broadcaster=broadcaster, notifier=notifier)
    message = command.execute(conversation_id, current_user, data)
    return MessageRead.model_validate(message)


@conversations_router.get(
    "/{conversation_id}/messages", response_model=Page[MessageRead]
)
def list_messages(
    params: Params = Depends(),
    conversation: Conversation = Depends(get_conversation_by_id),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[MessageRead]:
    """Messages oldest first; customers never see internal notes."""
    query = MessageService(db).get_messages_query(
        conversation.id, include_internal=not current_user.is_customer
    )
    return paginate(query, params=params)


@conversations_router.get(
    "/{conversation_id}/pinned", response_model=List[MessageRead]
)
def list_pinned_messages(
    conversation: Conversation = Depends(get_conversation_by_id),
    db: Session = Depends(get_db),
) -> List[MessageRead]:
    pinned = MessageService(db).get_pinned(conversation.id)
    return [MessageRead.model_validate(m) for m in pinned]


@conversations_router.post("/{conversation_id}/read", response_model=MarkReadResult)
def mark_conversation_read(
    conversation: Conversation = Depends(get_conversation_by_id),
    current_user: CurrentUser = Depends(get_current_user),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    db: Session = Depends(get_db),
) -> MarkReadResult:
    marked = ConversationService(db).mark_read_for(conversation.id, current_user.id)
    broadcaster.publish(
        conversation_channel(conversation.id),
        EVENT_CONVERSATION_READ,
        {"conversation_id": str(conversation.id), "user_id": str(current_user.id)},
    )
    return MarkReadResult(conversation_id=conversation.id, marked=marked, unread_count=0)


@conversations_router.post("/{conversation_id}/archive", response_model=ConversationRead)
def archive_conversation(
    conversation: Conversation = Depends(get_conversation_by_id),
    db: Session = Depends(get_db),
) -> ConversationRead:
    return ConversationRead.model_validate(
        ConversationService(db).archive(conversation.id)
    )


@conversations_router.post("/{conversation_id}/restore", response_model=ConversationRead)
def restore_conversation(
    conversation: Conversation = Depends(get_conversation_by_id),
    db: Session = Depends(get_db),
) -> ConversationRead:
    return ConversationRead.model_validate(
        ConversationService(db).restore(conversation.id)
    )


@conversations_router.post("/{conversation_id}/close", response_model=ConversationRead)
def close_conversation(
    conversation: Conversation = Depends(get_conversation_by_id),
    db: Session = Depends(get_db),
) -> ConversationRead:
    return ConversationRead.model_validate(
        ConversationService(db).close(conversation.id)
    )


@conversations_router.post("/{conversation_id}/assign", response_model=ConversationRead)
def assign_conversation(
    data: AssignRequest,
    conversation: Conversation = Depends(get_conversation_by_id),
    db: Session = Depends(get_db),
) -> ConversationRead:
    return ConversationRead.model_validate(
        ConversationService(db).assign(conversation.id, data.user_id)
    )


@conversations_router.post(
    "/{conversation_id}/participants/{user_id}", response_model=ConversationRead
)
def add_participant(
    user_id: UUID,
    conversation: Conversation = Depends(get_conversation_by_id),
    db: Session = Depends(get_db),
) -> ConversationRead:
    return ConversationRead.model_validate(
        ConversationService(db).add_participant(conversation.id, user_id)
    )


@conversations_router.delete(
    "/{conversation_id}/participants/{user_id}", response_model=ConversationRead
)
def remove_participant(
    user_id: UUID,
    conversation: Conversation = Depends(get_conversation_by_id),
    db: Session = Depends(get_db),
) -> ConversationRead:
    return ConversationRead.model_validate(
        ConversationService(db).remove_participant(conversation.id, user_id)
    )


@conversations_router.post("/{conversation_id}/typing", status_code=204)
def typing_indicator(
    data: TypingRequest,
    conversation: Conversation = Depends(get_conversation_by_id),
    current_user: CurrentUser = Depends(get_current_user),
    broadcaster: Broadcaster = Depends(get_broadcaster),
) -> None:
    broadcaster.publish(
        conversation_channel(conversation.id),
        EVENT_USER_TYPING,
        {"user_id": str(current_user.id), "is_typing": data.is_typing},
    )
