from livechat.models.conversation import Conversation
from livechat.models.guest_session import GuestSession
from livechat.models.message import Message, MessageComment, MessageEdit, MessageReaction
from livechat.models.notification import Notification

__all__ = [
    "Conversation",
    "GuestSession",
    "Message",
    "MessageComment",
    "MessageEdit",
    "MessageReaction",
    "Notification",
]
