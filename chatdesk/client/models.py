"""Client-side views of conversations and messages."""
from enum import Enum

from pydantic import Field

from chatdesk.api.schemas import ConversationOut, MessageOut


class MessageStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class ChatMessage(MessageOut):
    """A transcript entry with its persistence status as known to the client."""
    status: MessageStatus = MessageStatus.CONFIRMED


class Chat(ConversationOut):
    messages: list[ChatMessage] = Field(default_factory=list)
