"""
Message model and its normalized children.

Reactions and edit history live in their own tables so that concurrent
mutations are row inserts/deletes rather than read-modify-write of a JSON blob.
The (message_id, user_id) unique constraint on message_reactions is what
guarantees one reaction per user per message.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from livechat.constants.chat import MessageStatus, MessageType
from livechat.core.owner import OwnerRef
from livechat.core.reactions import ReactionBucketData, group_reactions
from livechat.db import Base, JSONType
from livechat.models.mixins import TimestampMixin


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Message(Base, TimestampMixin):
    """One chat message. `version` is bumped on every UPDATE (optimistic locking)."""

    __tablename__ = "messages"

    __table_args__ = (
        Index(
            "ix_messages_conversation_created",
            "conversation_id",
            "created_at",
            "sequence",
        ),
        UniqueConstraint(
            "conversation_id", "sequence", name="uq_messages_conversation_sequence"
        ),
        Index("ix_messages_conversation_pinned", "conversation_id", "is_pinned"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    conversation_id = Column(
        Uuid,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_kind = Column(String(32), nullable=True)
    sender_ref_id = Column(Uuid, nullable=True)
    sender_id = Column(Uuid, nullable=True)  # authenticated user; null for guests
    recipient_id = Column(Uuid, nullable=True)
    body = Column(Text, nullable=False)
    message_type = Column(String(16), nullable=False, default=MessageType.TEXT.value)
    attachments = Column(JSONType, nullable=False, default=list)
    status = Column(String(16), nullable=False, default=MessageStatus.SENT.value)
    is_read = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    reply_to_id = Column(
        Uuid, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True
    )
    is_internal_note = Column(Boolean, nullable=False, default=False)
    is_pinned = Column(Boolean, nullable=False, default=False)
    pinned_at = Column(DateTime(timezone=True), nullable=True)
    pinned_by = Column(Uuid, nullable=True)
    is_edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime(timezone=True), nullable=True)
    original_body = Column(Text, nullable=True)
    extra = Column("metadata", JSONType, nullable=True, default=dict)
    sequence = Column(Integer, nullable=False)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    conversation = relationship("Conversation", back_populates="messages")
    reply_to = relationship("Message", remote_side=[id], foreign_keys=[reply_to_id])
    reaction_entries = relationship(
        "MessageReaction",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageReaction.created_at",
        passive_deletes=True,
    )
    edits = relationship(
        "MessageEdit",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageEdit.edited_at",
        passive_deletes=True,
    )
    comments = relationship(
        "MessageComment",
        back_populates="message",
        cascade="all, delete-orphan",
        order_by="MessageComment.created_at",
        passive_deletes=True,
    )

    @property
    def sender(self) -> OwnerRef | None:
        return OwnerRef.from_columns(self.sender_kind, self.sender_ref_id)

    @sender.setter
    def sender(self, value: OwnerRef | None) -> None:
        self.sender_kind = value.kind.value if value is not None else None
        self.sender_ref_id = value.id if value is not None else None

    @property
    def message_metadata(self) -> dict | None:
        """Expose DB column 'metadata' for serialization (avoid shadowing Base.metadata)."""
        return self.extra

    @property
    def reaction_buckets(self) -> list[ReactionBucketData]:
        return group_reactions(self.reaction_entries)

    @property
    def is_ai_response(self) -> bool:
        return bool((self.extra or {}).get("is_ai_response"))

    @property
    def edit_count(self) -> int:
        return len(self.edits)

    @property
    def attachment_count(self) -> int:
        return len(self.attachments or [])


class MessageReaction(Base):
    """One user's reaction to one message. A bucket is all rows sharing an emoji."""

    __tablename__ = "message_reactions"

    __table_args__ = (
        UniqueConstraint(
            "message_id", "user_id", name="uq_message_reactions_message_user"
        ),
        Index("ix_message_reactions_message_emoji", "message_id", "emoji"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id = Column(
        Uuid, ForeignKey("messages.id", ondelete="CASCADE"), nullable=False
    )
    user_id = Column(Uuid, nullable=False)
    emoji = Column(String(32), nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    message = relationship("Message", back_populates="reaction_entries")


class MessageEdit(Base):
    """Append-only edit log: the body as it was before each edit."""

    __tablename__ = "message_edits"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id = Column(
        Uuid,
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    previous_body = Column(Text, nullable=False)
    edited_by = Column(Uuid, nullable=False)
    edited_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    message = relationship("Message", back_populates="edits")


class MessageComment(Base):
    __tablename__ = "message_comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    message_id = Column(
        Uuid,
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Uuid, nullable=False)
    comment = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_now)

    message = relationship("Message", back_populates="comments")
