"""Chat service layer for conversations and completions.

Handles:
- Conversation create / list / rename / delete, scoped to the owner
- Message append (user + assistant) for the completion round trip
- Transcript retrieval in insertion order
"""
import logging
from typing import Optional

from sqlalchemy import delete
from sqlmodel import Session, select

from chatdesk.core.errors import ConversationNotFound
from chatdesk.core.types import MessageRole, utcnow
from chatdesk.models.conversation import Conversation, Message
from chatdesk.services.completion import CompletionGateway

logger = logging.getLogger(__name__)


class ChatService:
    """Service layer for chat operations. Holds no per-request state."""

    def __init__(self, default_name: str = "New Chat", strict_ownership: bool = True):
        """Initialize chat service."""
        self.default_name = default_name
        self.strict_ownership = strict_ownership

    def create_conversation(self, session: Session, user_id: str) -> Conversation:
        """
        Create an empty conversation with the default name.

        Returns:
            The stored Conversation, with its id
        """
        conversation = Conversation(user_id=user_id, name=self.default_name)
        session.add(conversation)
        session.commit()
        session.refresh(conversation)
        logger.info(f"Conversation created: user={user_id}, conversation={conversation.id}")
        return conversation

    def list_conversations(self, session: Session, user_id: str) -> list[Conversation]:
        statement = select(Conversation).where(
            Conversation.user_id == user_id
        ).order_by(Conversation.updated_at.desc())
        return list(session.exec(statement).all())

    def get_owned_conversation(
        self,
        session: Session,
        user_id: str,
        conversation_id: int,
    ) -> Optional[Conversation]:
        statement = select(Conversation).where(
            Conversation.id == conversation_id,
            Conversation.user_id == user_id,
        )
        return session.exec(statement).first()

    def get_conversation_history(
        self,
        session: Session,
        conversation_id: int,
        user_id: str,
    ) -> list[Message]:
        """
        Get all messages in conversation.

        Returns:
            List of Message instances in transcript (insertion) order
        """
        statement = select(Message).where(
            Message.conversation_id == conversation_id,
            Message.user_id == user_id,
        ).order_by(Message.id)

        return list(session.exec(statement).all())

    def rename_conversation(
        self,
        session: Session,
        user_id: str,
        conversation_id: int,
        name: str,
    ) -> Optional[Conversation]:
        """
        Rename an owned conversation.

        Returns:
            The updated Conversation, or None on a non-strict ownership miss

        Raises:
            ConversationNotFound: strict mode and no owned match
        """
        conversation = self._owned_or_miss(session, user_id, conversation_id, "rename")
        if conversation is None:
            return None

        conversation.name = name
        conversation.updated_at = utcnow()
        session.add(conversation)
        session.commit()
        session.refresh(conversation)
        logger.info(f"Conversation renamed: user={user_id}, conversation={conversation_id}")
        return conversation

    def delete_conversation(
        self,
        session: Session,
        user_id: str,
        conversation_id: int,
    ) -> bool:
        """
        Delete an owned conversation and all of its messages.

        Returns:
            True if something was deleted, False on a non-strict ownership miss

        Raises:
            ConversationNotFound: strict mode and no owned match
        """
        conversation = self._owned_or_miss(session, user_id, conversation_id, "delete")
        if conversation is None:
            return False

        session.execute(
            delete(Message).where(Message.conversation_id == conversation.id)
        )
        session.delete(conversation)
        session.commit()
        logger.info(f"Conversation deleted: user={user_id}, conversation={conversation_id}")
        return True

    def send_message(
        self,
        session: Session,
        gateway: CompletionGateway,
        user_id: str,
        conversation_id: int,
        prompt: str,
    ) -> Message:
        """
        Append a prompt and the provider's reply to a conversation.

        Flow:
        1. Resolve the owned conversation (never create one here)
        2. Build the user message
        3. Call the provider with the prompt alone
        4. Build the assistant message
        5. Insert both messages and bump updated_at in one commit
        6. Return the assistant message

        Messages are inserted as new rows rather than rewriting the
        conversation, so concurrent calls on one conversation both land.

        Raises:
            ConversationNotFound: no owned conversation; nothing is written
            CompletionProviderError: provider failed; nothing is written
        """
        conversation = self.get_owned_conversation(session, user_id, conversation_id)
        if conversation is None:
            logger.warning(f"Completion on missing conversation: user={user_id}, conversation={conversation_id}")
            raise ConversationNotFound()

        user_msg = Message(
            conversation_id=conversation.id,
            user_id=user_id,
            role=MessageRole.USER,
            content=prompt,
            timestamp=utcnow(),
        )

        reply = gateway.complete(prompt)

        assistant_msg = Message(
            conversation_id=conversation.id,
            user_id=user_id,
            role=MessageRole.ASSISTANT,
            content=reply,
            timestamp=utcnow(),
        )

        conversation.updated_at = assistant_msg.timestamp
        session.add(user_msg)
        session.add(assistant_msg)
        session.add(conversation)
        session.commit()
        session.refresh(assistant_msg)

        logger.info(
            f"Chat message processed: user={user_id}, conversation={conversation.id}, "
            f"message_id={user_msg.id}, response_id={assistant_msg.id}"
        )
        return assistant_msg

    def _owned_or_miss(
        self,
        session: Session,
        user_id: str,
        conversation_id: int,
        action: str,
    ) -> Optional[Conversation]:
        conversation = self.get_owned_conversation(session, user_id, conversation_id)
        if conversation is not None:
            return conversation

        logger.warning(f"Conversation {action} skipped, not owned: user={user_id}, conversation={conversation_id}")
        if self.strict_ownership:
            raise ConversationNotFound()
        return None
