"""Python client for the chat API: HTTP wrapper, session state and composer."""
from chatdesk.client.api import ApiError, ChatApiClient
from chatdesk.client.composer import Composer
from chatdesk.client.models import Chat, ChatMessage, MessageStatus
from chatdesk.client.session import ChatSessionState

__all__ = [
    "ApiError",
    "Chat",
    "ChatApiClient",
    "ChatMessage",
    "ChatSessionState",
    "Composer",
    "MessageStatus",
]
