"""In-app notifications for staff."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session as DBSession

from livechat.constants.chat import NOTIFICATION_KIND_CHAT
from livechat.models.notification import Notification
from livechat.utils.time import utcnow

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def create_notifications(
        self,
        user_ids: Iterable[UUID],
        message: str,
        link: Optional[str] = None,
        conversation_id: Optional[UUID] = None,
        kind: str = NOTIFICATION_KIND_CHAT,
    ) -> List[Notification]:
        """One row per distinct recipient, written in a single commit."""
        rows: List[Notification] = []
        seen: set[UUID] = set()
        now = utcnow()
        for user_id in user_ids:
            if user_id in seen:
                continue
            seen.add(user_id)
            rows.append(
                Notification(
                    user_id=user_id,
                    kind=kind,
                    message=message,
                    link=link,
                    conversation_id=conversation_id,
                    created_at=now,
                )
            )
        if not rows:
            return rows
        self.db.add_all(rows)
        self.db.commit()
        logger.info(
            "Created %d %s notifications for conversation %s",
            len(rows),
            kind,
            conversation_id,
        )
        return rows

    def list_for_user(
        self, user_id: UUID, unread_only: bool = False, limit: int = 50
    ) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read_at.is_(None))
        return query.order_by(Notification.created_at.desc()).limit(limit).all()

    def mark_read(self, user_id: UUID) -> int:
        count = (
            self.db.query(Notification)
            .filter(Notification.user_id == user_id, Notification.read_at.is_(None))
            .update({Notification.read_at: utcnow()}, synchronize_session=False)
        )
        self.db.commit()
        return count
