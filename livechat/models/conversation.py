"""Conversation model: a thread of messages between a guest/client/lead and staff."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    String,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from livechat.constants.chat import (
    ConversationPriority,
    ConversationStatus,
    OwnerKind,
)
from livechat.core.owner import OwnerRef
from livechat.db import Base, JSONType
from livechat.models.mixins import TimestampMixin

_GUEST_OWNER = text(f"owner_kind = '{OwnerKind.GUEST_SESSION.value}'")


class Conversation(Base, TimestampMixin):
    """
    Conversation metadata plus the denormalized unread counter and last activity.

    owner_kind/owner_id is the polymorphic owner (guest session, client, lead...).
    A guest session owns at most one conversation (partial unique index).
    """

    __tablename__ = "conversations"

    __table_args__ = (
        CheckConstraint("unread_count >= 0", name="ck_conversations_unread_count"),
        Index("ix_conversations_owner", "owner_kind", "owner_id"),
        Index(
            "uq_conversations_guest_owner",
            "owner_kind",
            "owner_id",
            unique=True,
            postgresql_where=_GUEST_OWNER,
            sqlite_where=_GUEST_OWNER,
        ),
        Index("ix_conversations_last_message_at", "last_message_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=True)
    owner_kind = Column(String(32), nullable=True)
    owner_id = Column(Uuid, nullable=True)
    created_by = Column(Uuid, nullable=True)
    assigned_to = Column(Uuid, nullable=True, index=True)
    status = Column(
        String(16), nullable=False, default=ConversationStatus.ACTIVE.value
    )
    priority = Column(
        String(16), nullable=False, default=ConversationPriority.NORMAL.value
    )
    participants = Column(JSONType, nullable=False, default=list)
    tags = Column(JSONType, nullable=False, default=list)
    last_message_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    unread_count = Column(Integer, nullable=False, default=0)
    is_internal = Column(Boolean, nullable=False, default=False)
    extra = Column("metadata", JSONType, nullable=True, default=dict)
    message_seq = Column(Integer, nullable=False, default=0)

    messages = relationship(
        "Message",
        back_populates="conversation",
        order_by="[Message.created_at, Message.sequence]",
        passive_deletes=True,
    )

    @property
    def owner(self) -> OwnerRef | None:
        return OwnerRef.from_columns(self.owner_kind, self.owner_id)

    @owner.setter
    def owner(self, value: OwnerRef | None) -> None:
        self.owner_kind = value.kind.value if value is not None else None
        self.owner_id = value.id if value is not None else None

    @property
    def is_guest_conversation(self) -> bool:
        return self.owner_kind == OwnerKind.GUEST_SESSION.value

    def has_participant(self, user_id: uuid.UUID) -> bool:
        return str(user_id) in (self.participants or [])

    @property
    def participant_ids(self) -> list[uuid.UUID]:
        return [uuid.UUID(p) for p in (self.participants or [])]
