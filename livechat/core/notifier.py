"""Staff notification dispatch for new chat messages."""

from __future__ import annotations

import logging
from typing import Optional, Protocol, Sequence
from uuid import UUID

logger = logging.getLogger(__name__)


class StaffNotifier(Protocol):
    def __call__(
        self,
        user_ids: Sequence[UUID],
        message: str,
        link: Optional[str] = None,
        conversation_id: Optional[UUID] = None,
    ) -> None:
        ...


class CeleryStaffNotifier:
    """Enqueue notify_staff_task; enqueue failures are logged, never raised."""

    def __call__(
        self,
        user_ids: Sequence[UUID],
        message: str,
        link: Optional[str] = None,
        conversation_id: Optional[UUID] = None,
    ) -> None:
        if not user_ids:
            return
        from livechat.tasks.notification_task import notify_staff_task

        try:
            notify_staff_task.delay(
                [str(u) for u in user_ids],
                message,
                link,
                str(conversation_id) if conversation_id else None,
            )
        except Exception as e:
            logger.warning(
                "Failed to enqueue notifications for conversation %s: %s",
                conversation_id,
                e,
            )


def get_staff_notifier() -> StaffNotifier:
    """FastAPI dependency; overridden in tests."""
    return CeleryStaffNotifier()
