"""Staff comments attached to individual messages."""

from __future__ import annotations

import logging
from typing import List
from uuid import UUID

from sqlalchemy.orm import Session as DBSession

from livechat.auth.current_user import CurrentUser
from livechat.constants.chat import MAX_COMMENT_LENGTH
from livechat.exceptions import AuthorizationError, NotFoundError, ValidationError
from livechat.models.message import Message, MessageComment
from livechat.utils.time import utcnow

logger = logging.getLogger(__name__)


class MessageCommentService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_comments(self, message_id: UUID) -> List[MessageComment]:
        return (
            self.db.query(MessageComment)
            .filter(MessageComment.message_id == message_id)
            .order_by(MessageComment.created_at.asc())
            .all()
        )

    def add_comment(
        self, message_id: UUID, user_id: UUID, comment: str
    ) -> MessageComment:
        comment = (comment or "").strip()
        if not comment:
            raise ValidationError("Comment is required")
        if len(comment) > MAX_COMMENT_LENGTH:
            raise ValidationError(
                f"Comment must not exceed {MAX_COMMENT_LENGTH} characters"
            )
        if self.db.query(Message.id).filter(Message.id == message_id).first() is None:
            raise NotFoundError("Message not found")

        row = MessageComment(
            message_id=message_id,
            user_id=user_id,
            comment=comment,
            created_at=utcnow(),
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete_comment(self, comment_id: UUID, user: CurrentUser) -> None:
        """Authors delete their own comments; admins delete any."""
        row = (
            self.db.query(MessageComment)
            .filter(MessageComment.id == comment_id)
            .first()
        )
        if row is None:
            raise NotFoundError("Comment not found")
        if row.user_id != user.id and not user.is_admin:
            raise AuthorizationError("You can only delete your own comments")
        self.db.delete(row)
        self.db.commit()
        logger.debug("Deleted comment %s", comment_id)
