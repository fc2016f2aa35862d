"""Enumerations shared by chat models, schemas and services."""

from enum import StrEnum


class OwnerKind(StrEnum):
    """Closed set of entities that can own a conversation or send a message."""

    GUEST_SESSION = "guest_session"
    CLIENT = "client"
    LEAD = "lead"
    PROJECT = "project"
    USER = "user"


class ConversationStatus(StrEnum):
    ACTIVE = "active"
    ARCHIVED = "archived"
    CLOSED = "closed"


class ConversationPriority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class MessageType(StrEnum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    VIDEO = "video"
    AUDIO = "audio"
    SYSTEM = "system"


class MessageStatus(StrEnum):
    """Delivery status; ranks only move forward (sent < delivered < read)."""

    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]


_STATUS_RANK = {
    MessageStatus.SENT: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
}


class InquiryType(StrEnum):
    GENERAL = "general"
    SUPPORT = "support"
    SALES = "sales"


# Allowed status moves; closed has no way out.
CONVERSATION_TRANSITIONS: dict[ConversationStatus, frozenset[ConversationStatus]] = {
    ConversationStatus.ACTIVE: frozenset(
        {ConversationStatus.ARCHIVED, ConversationStatus.CLOSED}
    ),
    ConversationStatus.ARCHIVED: frozenset({ConversationStatus.ACTIVE}),
    ConversationStatus.CLOSED: frozenset(),
}

GUEST_MESSAGE_TYPES = frozenset(
    {MessageType.TEXT, MessageType.IMAGE, MessageType.FILE}
)

MAX_EMOJI_LENGTH = 10
MAX_COMMENT_LENGTH = 1000
MAX_PINNED_REORDER = 3

NOTIFICATION_KIND_CHAT = "chat"

STAFF_ROLES = frozenset({"admin", "staff", "manager"})
CUSTOMER_ROLE = "customer"
ADMIN_ROLE = "admin"
