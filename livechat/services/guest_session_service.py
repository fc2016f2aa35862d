"""GuestSession get_or_create by browser session id, activity tracking."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from livechat.config import get_settings
from livechat.constants.chat import InquiryType
from livechat.exceptions import NotFoundError, ValidationError
from livechat.models.guest_session import GuestSession
from livechat.schemas.guest_session import GuestInfoUpdate
from livechat.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


class GuestSessionService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_guest_session(self, guest_session_id: UUID) -> Optional[GuestSession]:
        return (
            self.db.query(GuestSession)
            .filter(GuestSession.id == guest_session_id)
            .first()
        )

    def get_by_session_id(self, session_id: str) -> Optional[GuestSession]:
        return (
            self.db.query(GuestSession)
            .filter(GuestSession.session_id == session_id)
            .first()
        )

    def require_guest_session(self, guest_session_id: UUID) -> GuestSession:
        guest = self.get_guest_session(guest_session_id)
        if guest is None:
            raise NotFoundError("Guest session not found")
        return guest

    def get_or_create(
        self,
        session_id: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Tuple[GuestSession, bool]:
        """
        Get the guest for session_id or create it. Returns (guest, created).

        IP and user agent are only captured on creation. Two requests racing
        to create the same session both end up with the row that won the
        unique constraint on session_id.
        """
        if not session_id:
            raise ValidationError("A guest session id is required")
        guest = self.get_by_session_id(session_id)
        if guest is not None:
            return guest, False

        guest = GuestSession(
            session_id=session_id,
            ip_address=ip_address,
            user_agent=user_agent,
            inquiry_type=InquiryType.GENERAL.value,
            last_activity_at=utcnow(),
            extra={},
        )
        self.db.add(guest)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_by_session_id(session_id)
            if existing is None:
                raise
            logger.info("Guest session %s created concurrently; reusing", session_id)
            return existing, False
        self.db.refresh(guest)
        logger.info("Created guest session %s", guest.id)
        return guest, True

    def touch_activity(self, guest_session_id: UUID) -> GuestSession:
        guest = self.require_guest_session(guest_session_id)
        guest.last_activity_at = utcnow()
        self.db.commit()
        self.db.refresh(guest)
        return guest

    def is_active(self, guest_session_id: UUID) -> bool:
        """True while the guest has been seen within the active window."""
        guest = self.require_guest_session(guest_session_id)
        window = timedelta(minutes=get_settings().guest_active_window_minutes)
        return utcnow() - as_utc(guest.last_activity_at) <= window

    def update_guest_info(
        self, guest_session_id: UUID, data: GuestInfoUpdate
    ) -> GuestSession:
        guest = self.require_guest_session(guest_session_id)
        update_data = data.model_dump(exclude_unset=True, mode="json")
        for key, value in update_data.items():
            if key == "inquiry_type" and value is None:
                continue
            setattr(guest, key, value)
        guest.last_activity_at = utcnow()
        self.db.commit()
        self.db.refresh(guest)
        return guest
