"""Notification model: one in-app notice for one staff user."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, String, Text, Uuid

from livechat.db import Base


class Notification(Base):
    __tablename__ = "notifications"

    __table_args__ = (Index("ix_notifications_user_created", "user_id", "created_at"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False)
    kind = Column(String(32), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(512), nullable=True)
    conversation_id = Column(Uuid, nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
