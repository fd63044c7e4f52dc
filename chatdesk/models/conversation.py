"""Conversation and Message SQLModel definitions.

Models:
- Conversation: named chat owned by exactly one user identity
- Message: one transcript entry, only ever reached through its conversation
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.types import DateTime, TypeDecorator
from sqlmodel import Field, SQLModel

from chatdesk.core.types import MessageRole, as_utc, utcnow


class UTCDateTime(TypeDecorator):
    """
    Stores UTC as a naive DATETIME and always loads it back timezone-aware.

    SQLite keeps no offset, so the offset is normalised on the way in and
    re-attached on the way out.
    """
    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


class Conversation(SQLModel, table=True):
    """
    Conversation entity.

    Ownership: each conversation belongs to exactly one user via user_id.
    All queries MUST filter by user_id; user_id never changes after insert.
    The name is always supplied by the service (its configured default).
    """
    __tablename__ = "conversation"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True, nullable=False)
    name: str = Field(max_length=255)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime())
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime())


class Message(SQLModel, table=True):
    """
    Message entity for conversations.

    Messages are append-only rows; transcript order is insertion order (id).
    Denormalized user_id for ownership verification.
    """
    __tablename__ = "message"

    id: Optional[int] = Field(default=None, primary_key=True)
    conversation_id: int = Field(
        foreign_key="conversation.id", index=True, nullable=False
    )
    user_id: str = Field(index=True, nullable=False)
    role: MessageRole = Field(default=MessageRole.USER)
    content: str = Field()
    timestamp: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime())
