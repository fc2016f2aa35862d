"""GuestSession model: an anonymous visitor keyed by the browser session id."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text, Uuid

from livechat.constants.chat import InquiryType
from livechat.db import Base, JSONType
from livechat.models.mixins import TimestampMixin


class GuestSession(Base, TimestampMixin):
    """One row per browser session. session_id is the unique natural key."""

    __tablename__ = "guest_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    session_id = Column(String(255), unique=True, nullable=False, index=True)
    guest_name = Column(String(255), nullable=True)
    guest_email = Column(String(255), nullable=True)
    guest_phone = Column(String(20), nullable=True)
    inquiry_type = Column(
        String(16), nullable=False, default=InquiryType.GENERAL.value
    )
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)
    last_activity_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    extra = Column("metadata", JSONType, nullable=True, default=dict)

    @property
    def display_name(self) -> str:
        if self.guest_name:
            return self.guest_name
        if self.guest_email:
            return self.guest_email
        short = self.id.hex[:8] if self.id is not None else "new"
        return f"Guest #{short}"
