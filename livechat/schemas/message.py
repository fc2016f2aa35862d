"""Pydantic schemas for messages, reactions, edits and comments."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, Field, NonNegativeInt

from livechat.constants.chat import (
    MAX_COMMENT_LENGTH,
    MAX_EMOJI_LENGTH,
    MAX_PINNED_REORDER,
    MessageStatus,
    MessageType,
    OwnerKind,
)


class OwnerRefSchema(BaseModel):
    """Wire form of an owner reference."""

    kind: OwnerKind
    id: UUID

    model_config = {"from_attributes": True}


class Attachment(BaseModel):
    """Attachment metadata only; the file itself lives in external storage."""

    name: str = Field(..., min_length=1, max_length=255)
    path: str = Field(..., min_length=1, max_length=1024)
    size: NonNegativeInt
    mime_type: Optional[str] = Field(None, max_length=255)


class MessageCreate(BaseModel):
    """Staff message payload. Length limits are enforced by MessageService."""

    body: str
    message_type: MessageType = MessageType.TEXT
    attachments: list[Attachment] = Field(default_factory=list)
    reply_to_id: Optional[UUID] = None
    recipient_id: Optional[UUID] = None
    is_internal_note: bool = False
    metadata: Optional[dict[str, Any]] = None


class GuestMessageCreate(BaseModel):
    body: str
    message_type: MessageType = MessageType.TEXT
    attachments: list[Attachment] = Field(default_factory=list)


class MessageEditRequest(BaseModel):
    body: str
    expected_version: Optional[int] = None


class ReactionRequest(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=MAX_EMOJI_LENGTH)


class ReactionBucket(BaseModel):
    """All users who reacted to a message with one emoji."""

    emoji: str
    users: list[UUID]
    count: int

    model_config = {"from_attributes": True}


class PinnedReorderRequest(BaseModel):
    message_ids: list[UUID] = Field(..., min_length=1, max_length=MAX_PINNED_REORDER)


class CommentCreate(BaseModel):
    comment: str = Field(..., min_length=1, max_length=MAX_COMMENT_LENGTH)


class CommentRead(BaseModel):
    id: UUID
    message_id: UUID
    user_id: UUID
    comment: str
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageEditRead(BaseModel):
    previous_body: str
    edited_by: UUID
    edited_at: datetime

    model_config = {"from_attributes": True}


class EditHistoryRead(BaseModel):
    message_id: UUID
    original_body: Optional[str] = None
    current_body: str
    edit_count: int
    is_edited: bool
    edited_at: Optional[datetime] = None
    edit_history: list[MessageEditRead]


class MessageRead(BaseModel):
    """Message for API responses."""

    id: UUID
    conversation_id: UUID
    sender: Optional[OwnerRefSchema] = None
    sender_id: Optional[UUID] = None
    recipient_id: Optional[UUID] = None
    body: str
    message_type: MessageType
    attachments: list[Attachment] = Field(default_factory=list)
    status: MessageStatus
    is_read: bool
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    reply_to_id: Optional[UUID] = None
    is_internal_note: bool
    is_pinned: bool
    pinned_at: Optional[datetime] = None
    pinned_by: Optional[UUID] = None
    is_edited: bool
    edited_at: Optional[datetime] = None
    original_body: Optional[str] = None
    metadata: Optional[dict[str, Any]] = Field(
        default=None, validation_alias="message_metadata"
    )
    reactions: list[ReactionBucket] = Field(
        default_factory=list, validation_alias="reaction_buckets"
    )
    sequence: int
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}
