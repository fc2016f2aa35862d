"""Pydantic schemas for Conversation."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from livechat.constants.chat import (
    ConversationPriority,
    ConversationStatus,
    OwnerKind,
)
from livechat.schemas.message import MessageRead, OwnerRefSchema


class ConversationCreate(BaseModel):
    """Staff-created conversation, optionally with an opening message."""

    title: Optional[str] = Field(None, max_length=255)
    owner: Optional[OwnerRefSchema] = None
    assigned_to: Optional[UUID] = None
    priority: ConversationPriority = ConversationPriority.NORMAL
    is_internal: bool = False
    participants: list[UUID] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    initial_message: Optional[str] = None


class ConversationUpdate(BaseModel):
    """Schema for updating a conversation. All fields optional."""

    title: Optional[str] = Field(None, max_length=255)
    priority: Optional[ConversationPriority] = None
    tags: Optional[list[str]] = None
    is_internal: Optional[bool] = None
    metadata: Optional[dict[str, Any]] = None


class FindOrCreateRequest(BaseModel):
    owner: OwnerRefSchema
    title: Optional[str] = Field(None, max_length=255)


class AssignRequest(BaseModel):
    user_id: Optional[UUID] = None


class ConversationFilters(BaseModel):
    """List filters; unset fields are ignored."""

    status: Optional[ConversationStatus] = None
    priority: Optional[ConversationPriority] = None
    assigned_to: Optional[UUID] = None
    owner_kind: Optional[OwnerKind] = None
    participant: Optional[UUID] = None
    search: Optional[str] = None


class ConversationRead(BaseModel):
    id: UUID
    title: Optional[str] = None
    owner: Optional[OwnerRefSchema] = None
    created_by: Optional[UUID] = None
    assigned_to: Optional[UUID] = None
    status: ConversationStatus
    priority: ConversationPriority
    participants: list[UUID] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    last_message_at: datetime
    unread_count: int
    is_internal: bool
    metadata: Optional[dict[str, Any]] = Field(
        default=None, validation_alias="extra"
    )
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}


class ConversationWithMessage(BaseModel):
    conversation: ConversationRead
    message: Optional[MessageRead] = None


class TypingRequest(BaseModel):
    is_typing: bool = True


class MarkReadResult(BaseModel):
    conversation_id: UUID
    marked: int
    unread_count: int
