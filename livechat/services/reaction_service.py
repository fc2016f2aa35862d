"""
Reaction ledger: one reaction per user per message.

Each membership is a message_reactions row; buckets are derived on read.
Mutations lock the parent message row, and the (message_id, user_id) unique
constraint turns any writer that still races into a ConcurrencyConflict.
"""

from __future__ import annotations

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session as DBSession

from livechat.constants.chat import MAX_EMOJI_LENGTH
from livechat.core.reactions import ReactionBucketData, group_reactions
from livechat.exceptions import ConcurrencyConflict, NotFoundError, ValidationError
from livechat.models.message import Message, MessageReaction
from livechat.utils.time import utcnow

logger = logging.getLogger(__name__)


class ReactionService:
    def __init__(self, db: DBSession) -> None:
        self.db = db

    def get_reactions(self, message_id: UUID) -> List[ReactionBucketData]:
        """Buckets in order of first reaction; count always equals len(users)."""
        rows = (
            self.db.query(MessageReaction)
            .filter(MessageReaction.message_id == message_id)
            .order_by(MessageReaction.created_at.asc(), MessageReaction.id.asc())
            .all()
        )
        return group_reactions(rows)

    def add_reaction(
        self, message_id: UUID, emoji: str, user_id: UUID
    ) -> List[ReactionBucketData]:
        """
        React with emoji, replacing any other reaction the user has on the message.
        Re-adding the emoji the user already chose is a no-op.
        """
        emoji = self._validate_emoji(emoji)
        self._lock_message(message_id)

        existing = self._get_user_row(message_id, user_id)
        if existing is not None and existing.emoji == emoji:
            self.db.rollback()
            return self.get_reactions(message_id)
        if existing is not None:
            self.db.delete(existing)
            self.db.flush()

        self.db.add(
            MessageReaction(
                message_id=message_id,
                user_id=user_id,
                emoji=emoji,
                created_at=utcnow(),
            )
        )
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(
                "Concurrent reaction on message %s by user %s", message_id, user_id
            )
            raise ConcurrencyConflict(
                "Another reaction by this user was recorded concurrently"
            ) from e
        return self.get_reactions(message_id)

    def remove_reaction(
        self, message_id: UUID, emoji: str, user_id: UUID
    ) -> List[ReactionBucketData]:
        """Drop the user's reaction if it is this emoji; otherwise nothing changes."""
        emoji = self._validate_emoji(emoji)
        self._lock_message(message_id)
        deleted = (
            self.db.query(MessageReaction)
            .filter(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id,
                MessageReaction.emoji == emoji,
            )
            .delete(synchronize_session=False)
        )
        self.db.commit()
        if deleted:
            logger.debug("Removed %s reaction of %s on %s", emoji, user_id, message_id)
        return self.get_reactions(message_id)

    def get_reaction_count(self, message_id: UUID, emoji: str) -> int:
        return (
            self.db.query(MessageReaction)
            .filter(
                MessageReaction.message_id == message_id,
                MessageReaction.emoji == emoji,
            )
            .count()
        )

    def has_user_reacted(
        self, message_id: UUID, user_id: UUID, emoji: Optional[str] = None
    ) -> bool:
        row = self._get_user_row(message_id, user_id)
        if row is None:
            return False
        return emoji is None or row.emoji == emoji

    def get_user_reaction(self, message_id: UUID, user_id: UUID) -> Optional[str]:
        row = self._get_user_row(message_id, user_id)
        return row.emoji if row is not None else None

    def _get_user_row(
        self, message_id: UUID, user_id: UUID
    ) -> Optional[MessageReaction]:
        return (
            self.db.query(MessageReaction)
            .filter(
                MessageReaction.message_id == message_id,
                MessageReaction.user_id == user_id,
            )
            .first()
        )

    def _lock_message(self, message_id: UUID) -> Message:
        message = (
            self.db.query(Message)
            .filter(Message.id == message_id)
            .with_for_update()
            .one_or_none()
        )
        if message is None:
            raise NotFoundError("Message not found")
        return message

    @staticmethod
    def _validate_emoji(emoji: str) -> str:
        emoji = (emoji or "").strip()
        if not emoji:
            raise ValidationError("Emoji is required")
        if len(emoji) > MAX_EMOJI_LENGTH:
            raise ValidationError(
                f"Emoji must not exceed {MAX_EMOJI_LENGTH} characters"
            )
        return emoji
