"""
Message store: append to a conversation, delivery/read state, edits, pins, delete.

Every single-row mutation locks the message row first (SELECT ... FOR UPDATE)
and the mapper's version counter catches writers that slipped past the lock.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Iterable, List, Mapping, Optional, Sequence
from uuid import UUID

import pydantic
from sqlalchemy.orm import Query, Session as DBSession
from sqlalchemy.orm.exc import StaleDataError

from livechat.config import get_settings
from livechat.constants.chat import MessageStatus, MessageType
from livechat.core.owner import OwnerRef
from livechat.exceptions import (
    AuthorizationError,
    ConcurrencyConflict,
    ImmutableMessageError,
    NotFoundError,
    ValidationError,
)
from livechat.models.conversation import Conversation
from livechat.models.message import (
    Message,
    MessageComment,
    MessageEdit,
    MessageReaction,
)
from livechat.schemas.message import Attachment
from livechat.utils.time import as_utc, utcnow

logger = logging.getLogger(__name__)


class MessageService:
    def __init__(self, db: DBSession) -> None:
        self.db = db
        self.settings = get_settings()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_message(self, message_id: UUID) -> Optional[Message]:
        return self.db.query(Message).filter(Message.id == message_id).first()

    def require_message(self, message_id: UUID) -> Message:
        message = self.get_message(message_id)
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def get_messages_query(
        self, conversation_id: UUID, include_internal: bool = True
    ) -> Query[Message]:
        """Messages of a conversation, oldest first (for pagination)."""
        query = self.db.query(Message).filter(
            Message.conversation_id == conversation_id
        )
        if not include_internal:
            query = query.filter(Message.is_internal_note.is_(False))
        return query.order_by(Message.created_at.asc(), Message.sequence.asc())

    def get_messages(
        self,
        conversation_id: UUID,
        limit: int = 100,
        offset: int = 0,
        include_internal: bool = True,
    ) -> List[Message]:
        return (
            self.get_messages_query(conversation_id, include_internal)
            .offset(offset)
            .limit(limit)
            .all()
        )

    def get_message_count(self, conversation_id: UUID) -> int:
        return (
            self.db.query(Message)
            .filter(Message.conversation_id == conversation_id)
            .count()
        )

    def get_pinned(self, conversation_id: UUID) -> List[Message]:
        """Pinned messages, most recently pinned first."""
        return (
            self.db.query(Message)
            .filter(
                Message.conversation_id == conversation_id,
                Message.is_pinned.is_(True),
            )
            .order_by(Message.pinned_at.desc())
            .all()
        )

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def append(
        self,
        conversation_id: UUID,
        sender: Optional[OwnerRef],
        body: str,
        message_type: str | MessageType = MessageType.TEXT,
        attachments: Iterable[Attachment | Mapping[str, Any]] = (),
        metadata: Optional[dict[str, Any]] = None,
        sender_id: Optional[UUID] = None,
        recipient_id: Optional[UUID] = None,
        reply_to_id: Optional[UUID] = None,
        is_internal_note: bool = False,
    ) -> Message:
        """
        Append a message and update the conversation's counters in one transaction.

        The conversation row is locked while the per-conversation sequence is
        assigned, so messages sharing a timestamp still have a stable order.
        System messages do not count as unread.
        """
        msg_type = self._validate_type(message_type)
        self.validate_body(body)
        attachment_rows = self.validate_attachments(attachments)

        conversation = (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .with_for_update()
            .one_or_none()
        )
        if conversation is None:
            raise NotFoundError("Conversation not found")

        if reply_to_id is not None:
            target = self.get_message(reply_to_id)
            if target is None:
                raise NotFoundError("Reply target not found")
            if target.conversation_id != conversation.id:
                raise ValidationError(
                    "Reply target belongs to a different conversation"
                )

        now = utcnow()
        conversation.message_seq = (conversation.message_seq or 0) + 1
        message = Message(
            conversation_id=conversation.id,
            sender_id=sender_id,
            recipient_id=recipient_id,
            body=body,
            message_type=msg_type.value,
            attachments=attachment_rows,
            status=MessageStatus.SENT.value,
            is_read=False,
            reply_to_id=reply_to_id,
            is_internal_note=is_internal_note,
            extra=dict(metadata or {}),
            sequence=conversation.message_seq,
            created_at=now,
            updated_at=now,
        )
        message.sender = sender
        self.db.add(message)

        conversation.last_message_at = now
        if msg_type != MessageType.SYSTEM:
            conversation.unread_count = (conversation.unread_count or 0) + 1

        self.db.commit()
        self.db.refresh(message)
        logger.debug(
            "Appended message %s to conversation %s (seq %s)",
            message.id,
            conversation.id,
            message.sequence,
        )
        return message

    # ------------------------------------------------------------------
    # Delivery state
    # ------------------------------------------------------------------

    def mark_delivered(self, message_id: UUID) -> Message:
        """sent -> delivered. Never moves a read message backwards."""
        message = self._lock_message(message_id)
        if MessageStatus(message.status).rank < MessageStatus.DELIVERED.rank:
            message.status = MessageStatus.DELIVERED.value
            message.delivered_at = utcnow()
            self._commit()
            self.db.refresh(message)
        return message

    def mark_read(self, message_id: UUID) -> Message:
        message = self._lock_message(message_id)
        if message.status != MessageStatus.READ.value:
            now = utcnow()
            message.status = MessageStatus.READ.value
            message.is_read = True
            message.read_at = now
            if message.delivered_at is None:
                message.delivered_at = now
            self._commit()
            self.db.refresh(message)
        return message

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------

    def can_be_edited_by(self, message: Message, user_id: UUID) -> bool:
        if message.message_type == MessageType.SYSTEM.value:
            return False
        if message.sender_id is None or message.sender_id != user_id:
            return False
        return self._within_edit_window(message)

    def edit(
        self,
        message_id: UUID,
        new_body: str,
        editor_id: UUID,
        expected_version: Optional[int] = None,
    ) -> Message:
        """
        Replace the body, keeping the very first body in original_body and
        appending the replaced body to the edit log.
        """
        message = self._lock_message(message_id)
        if message.message_type == MessageType.SYSTEM.value:
            raise ImmutableMessageError("System messages cannot be edited")
        if message.sender_id is None or message.sender_id != editor_id:
            raise AuthorizationError("You can only edit your own messages")
        if not self._within_edit_window(message):
            raise AuthorizationError(
                "Messages can only be edited within "
                f"{self.settings.chat_edit_window_minutes} minutes of posting"
            )
        self.validate_body(new_body)
        if new_body == message.body:
            raise ValidationError("No changes detected in the message")
        if expected_version is not None and expected_version != message.version:
            raise ConcurrencyConflict("Message was modified by another request")

        now = utcnow()
        if not message.is_edited and message.original_body is None:
            message.original_body = message.body
        self.db.add(
            MessageEdit(
                message_id=message.id,
                previous_body=message.body,
                edited_by=editor_id,
                edited_at=now,
            )
        )
        message.body = new_body
        message.is_edited = True
        message.edited_at = now
        self._commit()
        self.db.refresh(message)
        logger.info("Message %s edited by %s", message.id, editor_id)
        return message

    def get_edit_history(self, message_id: UUID) -> List[MessageEdit]:
        self.require_message(message_id)
        return (
            self.db.query(MessageEdit)
            .filter(MessageEdit.message_id == message_id)
            .order_by(MessageEdit.edited_at.asc())
            .all()
        )

    # ------------------------------------------------------------------
    # Pins
    # ------------------------------------------------------------------

    def pin(self, message_id: UUID, user_id: UUID) -> Message:
        message = self._lock_message(message_id)
        if message.is_pinned:
            return message
        limit = self.settings.chat_max_pinned_messages
        if limit is not None:
            pinned = (
                self.db.query(Message)
                .filter(
                    Message.conversation_id == message.conversation_id,
                    Message.is_pinned.is_(True),
                )
                .count()
            )
            if pinned >= limit:
                raise ValidationError(
                    f"Maximum of {limit} messages can be pinned per conversation"
                )
        message.is_pinned = True
        message.pinned_at = utcnow()
        message.pinned_by = user_id
        self._commit()
        self.db.refresh(message)
        return message

    def unpin(self, message_id: UUID) -> Message:
        message = self._lock_message(message_id)
        if message.is_pinned:
            message.is_pinned = False
            message.pinned_at = None
            message.pinned_by = None
            self._commit()
            self.db.refresh(message)
        return message

    def reorder_pinned(self, message_ids: Sequence[UUID]) -> List[Message]:
        """Rewrite pinned_at so the first id sorts first (newest)."""
        if not message_ids:
            raise ValidationError("message_ids must not be empty")
        if len(set(message_ids)) != len(message_ids):
            raise ValidationError("message_ids must be unique")
        messages = (
            self.db.query(Message)
            .filter(Message.id.in_(list(message_ids)), Message.is_pinned.is_(True))
            .with_for_update()
            .all()
        )
        if len(messages) != len(message_ids):
            raise ValidationError("Some messages are not found or not pinned")
        if len({m.conversation_id for m in messages}) > 1:
            raise ValidationError(
                "All messages must belong to the same conversation"
            )
        by_id = {m.id: m for m in messages}
        base = utcnow()
        ordered = []
        for index, message_id in enumerate(message_ids):
            message = by_id[message_id]
            message.pinned_at = base - timedelta(seconds=index)
            ordered.append(message)
        self._commit()
        return ordered

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, message_id: UUID) -> None:
        """Hard delete. Replies survive with reply_to_id cleared."""
        message = self._lock_message(message_id)
        self.db.query(Message).filter(Message.reply_to_id == message.id).update(
            {Message.reply_to_id: None, Message.version: Message.version + 1},
            synchronize_session=False,
        )
        for child in (MessageReaction, MessageEdit, MessageComment):
            self.db.query(child).filter(child.message_id == message.id).delete(
                synchronize_session=False
            )
        self.db.delete(message)
        self._commit()
        logger.info("Deleted message %s", message_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _lock_message(self, message_id: UUID) -> Message:
        message = (
            self.db.query(Message)
            .filter(Message.id == message_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if message is None:
            raise NotFoundError("Message not found")
        return message

    def _commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError as e:
            self.db.rollback()
            raise ConcurrencyConflict(
                "Message was modified by another request"
            ) from e

    def _within_edit_window(self, message: Message) -> bool:
        window = timedelta(minutes=self.settings.chat_edit_window_minutes)
        return utcnow() - as_utc(message.created_at) <= window

    def _validate_type(self, message_type: str | MessageType) -> MessageType:
        try:
            return MessageType(message_type)
        except ValueError as e:
            raise ValidationError(f"Invalid message type {message_type!r}") from e

    def validate_body(self, body: str) -> None:
        if body is None or not body.strip():
            raise ValidationError("Message body is required")
        limit = self.settings.chat_max_message_length
        if len(body) > limit:
            raise ValidationError(
                f"Message body must not exceed {limit} characters"
            )

    def validate_attachments(
        self, attachments: Iterable[Attachment | Mapping[str, Any]]
    ) -> list[dict[str, Any]]:
        """Check sizes and shape; returns the attachments as plain dicts."""
        rows = []
        limit = self.settings.chat_max_attachment_bytes
        for raw in attachments or ():
            try:
                attachment = (
                    raw
                    if isinstance(raw, Attachment)
                    else Attachment.model_validate(raw)
                )
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid attachment: {e}") from e
            if attachment.size > limit:
                raise ValidationError(
                    f"Attachment {attachment.name!r} exceeds the {limit} byte limit"
                )
            rows.append(attachment.model_dump())
        return rows
