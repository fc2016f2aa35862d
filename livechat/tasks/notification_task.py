"""Celery task that persists staff notifications."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from livechat.infra.celery_app import celery_app
from livechat.infra.logging_config import get_logger
from livechat.services.notification_service import NotificationService
from livechat.utils.db.db_session_helper import db_session

logger = get_logger("notifications")


@celery_app.task(name="livechat.tasks.notification_task.notify_staff_task")
def notify_staff_task(
    user_id_strs: List[str],
    message: str,
    link: Optional[str] = None,
    conversation_id_str: Optional[str] = None,
) -> int:
    """Create one in-app notification per recipient. Returns rows written."""
    user_ids = []
    for raw in user_id_strs:
        try:
            user_ids.append(UUID(raw))
        except ValueError:
            logger.warning("Skipping invalid notification recipient: %s", raw)
    if not user_ids:
        return 0
    conversation_id = UUID(conversation_id_str) if conversation_id_str else None

    with db_session() as db:
        rows = NotificationService(db).create_notifications(
            user_ids,
            message=message,
            link=link,
            conversation_id=conversation_id,
        )
    return len(rows)
