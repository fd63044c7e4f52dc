"""Domain errors raised by services and translated to HTTP responses by routes."""
from typing import Optional


class ChatError(Exception):
    """Base class for chat backend errors."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ChatError):
    status_code = 401
    default_message = "User not authenticated"


class ConversationNotFound(ChatError, ValueError):
    """No conversation with this id is owned by the caller."""

    status_code = 404
    default_message = "Chat not found"


class CompletionProviderError(ChatError):
    """The completion provider call failed; message is the provider's."""


class PersistenceError(ChatError):
    default_message = "Database unavailable"
