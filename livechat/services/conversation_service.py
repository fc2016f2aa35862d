"""Conversation CRUD, guest/owner get_or_create, read state, participants, status."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import String, cast, func, or_
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session as DBSession

from livechat.auth.current_user import CurrentUser
from livechat.constants.chat import (
    CONVERSATION_TRANSITIONS,
    ConversationPriority,
    ConversationStatus,
    MessageStatus,
    MessageType,
    OwnerKind,
)
from livechat.core.owner import OwnerRef
from livechat.exceptions import AuthorizationError, NotFoundError, ValidationError
from livechat.models.conversation import Conversation
from livechat.models.guest_session import GuestSession
from livechat.models.message import Message
from livechat.schemas.conversation import (
    ConversationCreate,
    ConversationFilters,
    ConversationUpdate,
)
from livechat.services.message_service import MessageService
from livechat.utils.time import utcnow

logger = logging.getLogger(__name__)


def _participant_list(*groups) -> list[str]:
    """Merge user ids into a de-duplicated list of strings, keeping first-seen order."""
    seen: list[str] = []
    for group in groups:
        for user_id in group or ():
            if user_id is None:
                continue
            key = str(user_id)
            if key not in seen:
                seen.append(key)
    return seen


class ConversationService:
    def __init__(self, db: DBSession) -> None:
        self.db = db
        self._message_svc = MessageService(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_conversation(self, conversation_id: UUID) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .first()
        )

    def require_conversation(self, conversation_id: UUID) -> Conversation:
        conversation = self.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    def get_for_owner(self, owner: OwnerRef) -> List[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.owner_kind == owner.kind.value,
                Conversation.owner_id == owner.id,
            )
            .order_by(Conversation.created_at.asc())
            .all()
        )

    def get_for_guest(self, guest_session_id: UUID) -> Optional[Conversation]:
        return (
            self.db.query(Conversation)
            .filter(
                Conversation.owner_kind == OwnerKind.GUEST_SESSION.value,
                Conversation.owner_id == guest_session_id,
            )
            .first()
        )

    def get_conversations_query(
        self,
        filters: Optional[ConversationFilters] = None,
        user: Optional[CurrentUser] = None,
    ) -> Query[Conversation]:
        """Filtered conversations, most recent activity first (for pagination)."""
        filters = filters or ConversationFilters()
        query = self.db.query(Conversation)
        if filters.status is not None:
            query = query.filter(Conversation.status == filters.status.value)
        if filters.priority is not None:
            query = query.filter(Conversation.priority == filters.priority.value)
        if filters.assigned_to is not None:
            query = query.filter(Conversation.assigned_to == filters.assigned_to)
        if filters.owner_kind is not None:
            query = query.filter(Conversation.owner_kind == filters.owner_kind.value)
        if filters.search:
            query = query.filter(Conversation.title.ilike(f"%{filters.search}%"))
        participant = filters.participant
        if user is not None and user.is_customer:
            participant = user.id
        if participant is not None:
            query = query.filter(self._member_clause(participant))
        return query.order_by(Conversation.last_message_at.desc())

    def _member_clause(self, user_id: UUID):
        """SQL condition: user_id created the conversation or is a participant."""
        member = str(user_id)
        if self.db.get_bind().dialect.name == "postgresql":
            listed = cast(Conversation.participants, JSONB).contains([member])
        else:
            # participants is a JSON array of quoted UUID strings.
            listed = cast(Conversation.participants, String).like(f'%"{member}"%')
        return or_(listed, Conversation.created_by == user_id)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def get_or_create_for_guest(
        self, guest: GuestSession
    ) -> Tuple[Conversation, bool]:
        """
        The guest's single conversation, created on first use. Returns
        (conversation, created). A losing concurrent insert falls back to the
        winner's row (partial unique index on guest owners).
        """
        existing = self.get_for_guest(guest.id)
        if existing is not None:
            return existing, False

        conversation = Conversation(
            title=f"Guest Chat - {guest.display_name}",
            created_by=None,
            assigned_to=None,
            status=ConversationStatus.ACTIVE.value,
            priority=ConversationPriority.NORMAL.value,
            participants=[],
            tags=[],
            is_internal=False,
            unread_count=0,
            message_seq=0,
            last_message_at=utcnow(),
            extra={
                "guest_session_id": str(guest.id),
                "inquiry_type": guest.inquiry_type,
                "guest_info": {
                    "name": guest.guest_name,
                    "email": guest.guest_email,
                    "phone": guest.guest_phone,
                },
            },
        )
        conversation.owner = OwnerRef.guest(guest.id)
        self.db.add(conversation)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_for_guest(guest.id)
            if existing is None:
                raise
            logger.info(
                "Conversation for guest %s created concurrently; reusing", guest.id
            )
            return existing, False
        self.db.refresh(conversation)
        logger.info(
            "Created conversation %s for guest session %s", conversation.id, guest.id
        )
        return conversation, True

    def create_conversation(
        self, data: ConversationCreate, created_by: UUID
    ) -> Tuple[Conversation, Optional[Message]]:
        """Create a staff conversation; the creator is always a participant."""
        conversation = Conversation(
            title=data.title,
            created_by=created_by,
            assigned_to=data.assigned_to,
            status=ConversationStatus.ACTIVE.value,
            priority=data.priority.value,
            participants=_participant_list(
                [created_by], data.participants, [data.assigned_to]
            ),
            tags=list(dict.fromkeys(data.tags)),
            is_internal=data.is_internal,
            unread_count=0,
            message_seq=0,
            last_message_at=utcnow(),
            extra={},
        )
        if data.owner is not None:
            conversation.owner = OwnerRef.of(data.owner.kind, data.owner.id)
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)

        message = None
        if data.initial_message:
            message = self._message_svc.append(
                conversation.id,
                sender=conversation.owner,
                body=data.initial_message,
                sender_id=created_by,
            )
            self.db.refresh(conversation)
        return conversation, message

    def get_or_create_for_owner(
        self,
        owner: OwnerRef,
        user_id: UUID,
        title: Optional[str] = None,
    ) -> Tuple[Conversation, bool]:
        """
        Reuse the owner's active conversation (joining it), or start one with
        an internal system note.
        """
        if owner.kind == OwnerKind.GUEST_SESSION:
            raise ValidationError("Guest conversations are created by the guest")
        existing = (
            self.db.query(Conversation)
            .filter(
                Conversation.owner_kind == owner.kind.value,
                Conversation.owner_id == owner.id,
                Conversation.status == ConversationStatus.ACTIVE.value,
            )
            .order_by(Conversation.created_at.asc())
            .first()
        )
        if existing is not None:
            return self.add_participant(existing.id, user_id), False

        label = title or f"{owner.kind.value.replace('_', ' ').title()} {owner.id}"
        conversation = Conversation(
            title=f"Chat with {label}",
            created_by=user_id,
            status=ConversationStatus.ACTIVE.value,
            priority=ConversationPriority.NORMAL.value,
            participants=_participant_list([user_id]),
            tags=[],
            is_internal=False,
            unread_count=0,
            message_seq=0,
            last_message_at=utcnow(),
            extra={},
        )
        conversation.owner = owner
        self.db.add(conversation)
        self.db.commit()
        self.db.refresh(conversation)

        self._message_svc.append(
            conversation.id,
            sender=owner,
            body=f"Conversation started with {label}",
            message_type=MessageType.SYSTEM,
            sender_id=user_id,
            is_internal_note=True,
        )
        self.db.refresh(conversation)
        return conversation, True

    # ------------------------------------------------------------------
    # Read state
    # ------------------------------------------------------------------

    def mark_read_for(self, conversation_id: UUID, user_id: UUID) -> int:
        """
        Mark every message not sent by user_id as read and zero the unread
        counter. Returns how many messages changed. Safe to repeat.
        """
        conversation = (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .with_for_update()
            .one_or_none()
        )
        if conversation is None:
            raise NotFoundError("Conversation not found")
        now = utcnow()
        changed = (
            self.db.query(Message)
            .filter(
                Message.conversation_id == conversation_id,
                Message.status != MessageStatus.READ.value,
                or_(Message.sender_id.is_(None), Message.sender_id != user_id),
            )
            .update(
                {
                    Message.status: MessageStatus.READ.value,
                    Message.is_read: True,
                    Message.read_at: now,
                    Message.delivered_at: func.coalesce(Message.delivered_at, now),
                    Message.version: Message.version + 1,
                },
                synchronize_session=False,
            )
        )
        conversation.unread_count = 0
        self.db.commit()
        logger.debug(
            "Marked %d messages read in %s for %s", changed, conversation_id, user_id
        )
        return changed

    # ------------------------------------------------------------------
    # Participants, assignment, status
    # ------------------------------------------------------------------

    def add_participant(self, conversation_id: UUID, user_id: UUID) -> Conversation:
        conversation = self._lock(conversation_id)
        if not conversation.has_participant(user_id):
            conversation.participants = _participant_list(
                conversation.participants, [user_id]
            )
        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    def remove_participant(
        self, conversation_id: UUID, user_id: UUID
    ) -> Conversation:
        conversation = self._lock(conversation_id)
        if conversation.has_participant(user_id):
            conversation.participants = [
                p for p in conversation.participants if p != str(user_id)
            ]
        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    def assign(
        self, conversation_id: UUID, user_id: Optional[UUID]
    ) -> Conversation:
        """Set (or clear) the assignee; an assignee also becomes a participant."""
        conversation = self._lock(conversation_id)
        conversation.assigned_to = user_id
        if user_id is not None:
            conversation.participants = _participant_list(
                conversation.participants, [user_id]
            )
        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    def set_status(
        self, conversation_id: UUID, status: str | ConversationStatus
    ) -> Conversation:
        try:
            target = ConversationStatus(status)
        except ValueError as e:
            raise ValidationError(f"Invalid conversation status {status!r}") from e
        conversation = self._lock(conversation_id)
        current = ConversationStatus(conversation.status)
        if target == current:
            self.db.rollback()
            return conversation
        if target not in CONVERSATION_TRANSITIONS[current]:
            self.db.rollback()
            raise ValidationError(
                f"Cannot change conversation status from {current} to {target}"
            )
        conversation.status = target.value
        self.db.commit()
        self.db.refresh(conversation)
        logger.info(
            "Conversation %s status %s -> %s", conversation.id, current, target
        )
        return conversation

    def archive(self, conversation_id: UUID) -> Conversation:
        return self.set_status(conversation_id, ConversationStatus.ARCHIVED)

    def restore(self, conversation_id: UUID) -> Conversation:
        return self.set_status(conversation_id, ConversationStatus.ACTIVE)

    def close(self, conversation_id: UUID) -> Conversation:
        return self.set_status(conversation_id, ConversationStatus.CLOSED)

    def set_priority(
        self, conversation_id: UUID, priority: str | ConversationPriority
    ) -> Conversation:
        try:
            value = ConversationPriority(priority)
        except ValueError as e:
            raise ValidationError(f"Invalid priority {priority!r}") from e
        return self.update_conversation(
            conversation_id, ConversationUpdate(priority=value)
        )

    def update_conversation(
        self, conversation_id: UUID, data: ConversationUpdate
    ) -> Conversation:
        conversation = self._lock(conversation_id)
        update_data: Dict[str, Any] = data.model_dump(exclude_unset=True, mode="json")
        if "metadata" in update_data:
            conversation.extra = update_data.pop("metadata") or {}
        if "tags" in update_data:
            update_data["tags"] = list(dict.fromkeys(update_data["tags"] or []))
        for key, value in update_data.items():
            if value is None and key in ("priority", "is_internal"):
                continue
            setattr(conversation, key, value)
        self.db.commit()
        self.db.refresh(conversation)
        return conversation

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def ensure_access(self, conversation: Conversation, user: CurrentUser) -> None:
        """Customers only reach conversations they started or take part in."""
        if not user.is_customer:
            return
        if conversation.created_by == user.id or conversation.has_participant(
            user.id
        ):
            return
        raise AuthorizationError("Access denied to this conversation")

    def _lock(self, conversation_id: UUID) -> Conversation:
        conversation = (
            self.db.query(Conversation)
            .filter(Conversation.id == conversation_id)
            .with_for_update()
            .populate_existing()
            .one_or_none()
        )
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation
