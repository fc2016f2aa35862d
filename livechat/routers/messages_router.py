"""Per-message API: edit, history, reactions, pins, delivery state, comments."""

from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from livechat.auth.current_user import CurrentUser, get_current_user
from livechat.commands.chat.delivery import broadcast_message
from livechat.core.broadcaster import (
    EVENT_MESSAGE_DELETED,
    EVENT_MESSAGE_UPDATED,
    EVENT_REACTIONS_UPDATED,
    Broadcaster,
    conversation_channel,
    get_broadcaster,
)
from livechat.db import get_db
from livechat.exceptions import AuthorizationError
from livechat.models.message import Message
from livechat.routers.utils.dependencies import get_message_by_id
from livechat.schemas.message import (
    CommentCreate,
    CommentRead,
    EditHistoryRead,
    MessageEditRead,
    MessageEditRequest,
    MessageRead,
    PinnedReorderRequest,
    ReactionBucket,
    ReactionRequest,
)
from livechat.services.conversation_service import ConversationService
from livechat.services.message_comment_service import MessageCommentService
from livechat.services.message_service import MessageService
from livechat.services.reaction_service import ReactionService

messages_router = APIRouter(prefix="/messages", tags=["Message"])


def _publish_reactions(
    broadcaster: Broadcaster, message: Message, buckets: List[ReactionBucket]
) -> None:
    broadcaster.publish(
        conversation_channel(message.conversation_id),
        EVENT_REACTIONS_UPDATED,
        {
            "message_id": str(message.id),
            "reactions": [b.model_dump(mode="json") for b in buckets],
        },
    )


@messages_router.post("/pinned/reorder", response_model=List[MessageRead])
def reorder_pinned_messages(
    data: PinnedReorderRequest,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> List[MessageRead]:
    """Reorder up to three pinned messages; the first id is shown first."""
    svc = MessageService(db)
    conversation_svc = ConversationService(db)
    first = svc.require_message(data.message_ids[0])
    conversation_svc.ensure_access(
        conversation_svc.require_conversation(first.conversation_id), current_user
    )
    messages = svc.reorder_pinned(data.message_ids)
    return [MessageRead.model_validate(m) for m in messages]


@messages_router.delete("/comments/{comment_id}", status_code=204)
def delete_comment(
    comment_id: UUID,
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> None:
    MessageCommentService(db).delete_comment(comment_id, current_user)


@messages_router.patch("/{message_id}", response_model=MessageRead)
def edit_message(
    data: MessageEditRequest,
    message: Message = Depends(get_message_by_id),
    current_user: CurrentUser = Depends(get_current_user),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    db: Session = Depends(get_db),
) -> MessageRead:
    edited = MessageService(db).edit(
        message.id,
        data.body,
        editor_id=current_user.id,
        expected_version=data.expected_version,
    )
    broadcast_message(broadcaster, edited, event=EVENT_MESSAGE_UPDATED)
    return MessageRead.model_validate(edited)


@messages_router.get("/{message_id}/history", response_model=EditHistoryRead)
def get_edit_history(
    message: Message = Depends(get_message_by_id),
    db: Session = Depends(get_db),
) -> EditHistoryRead:
    edits = MessageService(db).get_edit_history(message.id)
    return EditHistoryRead(
        message_id=message.id,
        original_body=message.original_body,
        current_body=message.body,
        edit_count=len(edits),
        is_edited=message.is_edited,
        edited_at=message.edited_at,
        edit_history=[MessageEditRead.model_validate(e) for e in edits],
    )


@messages_router.get("/{message_id}/reactions", response_model=List[ReactionBucket])
def get_reactions(
    message: Message = Depends(get_message_by_id),
    db: Session = Depends(get_db),
) -> List[ReactionBucket]:
    return [
        ReactionBucket.model_validate(b)
        for b in ReactionService(db).get_reactions(message.id)
    ]


@messages_router.post("/{message_id}/reactions", response_model=List[ReactionBucket])
def add_reaction(
    data: ReactionRequest,
    message: Message = Depends(get_message_by_id),
    current_user: CurrentUser = Depends(get_current_user),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    db: Session = Depends(get_db),
) -> List[ReactionBucket]:
    """React to a message; replaces the caller's previous reaction."""
    buckets = [
        ReactionBucket.model_validate(b)
        for b in ReactionService(db).add_reaction(
            message.id, data.emoji, current_user.id
        )
    ]
    _publish_reactions(broadcaster, message, buckets)
    return buckets


@messages_router.delete(
    "/{message_id}/reactions", response_model=List[ReactionBucket]
)
def remove_reaction(
    emoji: str = Query(..., min_length=1),
    message: Message = Depends(get_message_by_id),
    current_user: CurrentUser = Depends(get_current_user),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    db: Session = Depends(get_db),
) -> List[ReactionBucket]:
    buckets = [
        ReactionBucket.model_validate(b)
        for b in ReactionService(db).remove_reaction(
            message.id, emoji, current_user.id
        )
    ]
    _publish_reactions(broadcaster, message, buckets)
    return buckets


@messages_router.post("/{message_id}/pin", response_model=MessageRead)
def pin_message(
    message: Message = Depends(get_message_by_id),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MessageRead:
    return MessageRead.model_validate(
        MessageService(db).pin(message.id, current_user.id)
    )


@messages_router.delete("/{message_id}/pin", response_model=MessageRead)
def unpin_message(
    message: Message = Depends(get_message_by_id),
    db: Session = Depends(get_db),
) -> MessageRead:
    return MessageRead.model_validate(MessageService(db).unpin(message.id))


@messages_router.post("/{message_id}/delivered", response_model=MessageRead)
def mark_delivered(
    message: Message = Depends(get_message_by_id),
    db: Session = Depends(get_db),
) -> MessageRead:
    return MessageRead.model_validate(MessageService(db).mark_delivered(message.id))


@messages_router.post("/{message_id}/read", response_model=MessageRead)
def mark_read(
    message: Message = Depends(get_message_by_id),
    db: Session = Depends(get_db),
) -> MessageRead:
    return MessageRead.model_validate(MessageService(db).mark_read(message.id))


@messages_router.delete("/{message_id}", status_code=204)
def delete_message(
    message: Message = Depends(get_message_by_id),
    current_user: CurrentUser = Depends(get_current_user),
    broadcaster: Broadcaster = Depends(get_broadcaster),
    db: Session = Depends(get_db),
) -> None:
    """Authors delete their own messages; admins delete any."""
    if message.sender_id != current_user.id and not current_user.is_admin:
        raise AuthorizationError("You can only delete your own messages")
    message_id, conversation_id = message.id, message.conversation_id
    MessageService(db).delete(message_id)
    broadcaster.publish(
        conversation_channel(conversation_id),
        EVENT_MESSAGE_DELETED,
        {"message_id": str(message_id)},
    )


@messages_router.get("/{message_id}/comments", response_model=List[CommentRead])
def list_comments(
    message: Message = Depends(get_message_by_id),
    db: Session = Depends(get_db),
) -> List[CommentRead]:
    return [
        CommentRead.model_validate(c)
        for c in MessageCommentService(db).get_comments(message.id)
    ]


@messages_router.post(
    "/{message_id}/comments", response_model=CommentRead, status_code=201
)
def add_comment(
    data: CommentCreate,
    message: Message = Depends(get_message_by_id),
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CommentRead:
    return CommentRead.model_validate(
        MessageCommentService(db).add_comment(message.id, current_user.id, data.comment)
    )
