"""Pydantic schemas for GuestSession."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from livechat.constants.chat import InquiryType


class GuestInfoUpdate(BaseModel):
    """Guest-supplied contact details. All fields optional."""

    guest_name: Optional[str] = Field(None, max_length=255)
    guest_email: Optional[EmailStr] = None
    guest_phone: Optional[str] = Field(None, max_length=20)
    inquiry_type: Optional[InquiryType] = None


class GuestSessionRead(BaseModel):
    id: UUID
    session_id: str
    guest_name: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    inquiry_type: InquiryType
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    display_name: str
    last_activity_at: datetime
    metadata: Optional[dict[str, Any]] = Field(
        default=None, validation_alias="extra"
    )
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True, "populate_by_name": True}
