"""Request and response models shared by the API routes and the client.

Every response is wrapped in the envelope ``{success, data?, message?, error?}``.
Wire field names are camelCase.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from chatdesk.core.types import MessageRole, as_utc

if TYPE_CHECKING:
    from chatdesk.models.conversation import Conversation, Message


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MessageOut(CamelModel):
    """A transcript entry as seen by clients."""
    role: MessageRole
    content: str
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def from_row(cls, message: "Message") -> "MessageOut":
        return cls(role=message.role, content=message.content, timestamp=message.timestamp)


class ConversationOut(CamelModel):
    """A conversation document with its messages in transcript order."""
    id: int
    user_id: str
    name: str
    messages: list[MessageOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at")
    @classmethod
    def dates_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @classmethod
    def from_row(cls, conversation: "Conversation", messages: list["Message"]) -> "ConversationOut":
        return cls(
            id=conversation.id,
            user_id=conversation.user_id,
            name=conversation.name,
            messages=[MessageOut.from_row(m) for m in messages],
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )


class RenameRequest(CamelModel):
    chat_id: int
    name: str = Field(min_length=1, max_length=255)


class DeleteRequest(CamelModel):
    chat_id: int


class CompletionRequest(CamelModel):
    chat_id: int
    prompt: str

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Prompt cannot be empty")
        return value


class Envelope(BaseModel):
    success: bool = True
    message: Optional[str] = None
    error: Optional[str] = None


class ConversationEnvelope(Envelope):
    data: Optional[ConversationOut] = None


class ConversationListEnvelope(Envelope):
    data: list[ConversationOut] = Field(default_factory=list)


class MessageEnvelope(Envelope):
    data: Optional[MessageOut] = None
