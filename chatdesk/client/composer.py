"""Prompt composer: submits prompts and applies optimistic transcript updates."""
import logging
from typing import Optional

from chatdesk.client.api import ApiError
from chatdesk.client.models import Chat, ChatMessage, MessageStatus
from chatdesk.client.session import ChatSessionState
from chatdesk.core.types import MessageRole, utcnow

logger = logging.getLogger(__name__)


class Composer:
    """
    Holds one pending prompt and sends it to the selected chat.

    At most one request is outstanding per composer. The user message is
    shown immediately as ``pending``; it is confirmed when the reply
    arrives, or marked ``failed`` and retracted if the call fails, in which
    case the prompt text is restored.
    """

    def __init__(self, state: ChatSessionState):
        self.state = state
        self.prompt = ""
        self.is_loading = False

    def set_prompt(self, text: str) -> None:
        self.prompt = text

    async def handle_key(self, key: str, shift: bool = False) -> Optional[ChatMessage]:
        if key == "Enter" and not shift:
            return await self.submit()
        return None

    def _active_chat(self) -> Optional[Chat]:
        chat = self.state.selected_chat
        if chat is None and self.state.chats:
            # Fall back to the most recently created chat
            chat = max(self.state.chats, key=lambda c: c.created_at)
            self.state.select(chat.id)
        return chat

    async def submit(self) -> Optional[ChatMessage]:
        """
        Send the pending prompt.

        Returns:
            The assistant message, or None if rejected or failed
        """
        prompt = self.prompt
        notify = self.state.notify

        if not self.state.user:
            notify("Login to send message")
            return None
        if self.is_loading:
            notify("Wait for the previous prompt response")
            return None
        chat = self._active_chat()
        if chat is None:
            notify("No chat selected")
            return None
        if not prompt.strip():
            return None

        self.is_loading = True
        self.prompt = ""
        pending = ChatMessage(
            role=MessageRole.USER,
            content=prompt,
            timestamp=utcnow(),
            status=MessageStatus.PENDING,
        )
        chat.messages.append(pending)

        try:
            reply = await self.state.api.complete(chat.id, prompt)
        except ApiError as e:
            pending.status = MessageStatus.FAILED
            current = self.state.find(chat.id) or chat
            current.messages[:] = [m for m in current.messages if m is not pending]
            self.prompt = prompt
            logger.warning(f"Send prompt error: {e.message}")
            if e.status_code == 401:
                notify("Authentication failed. Please log in again.")
            else:
                notify(e.message or "Something went wrong")
            return None
        finally:
            self.is_loading = False

        pending.status = MessageStatus.CONFIRMED
        # A refresh during the request replaces the chat objects in state
        current = self.state.find(chat.id) or chat
        if not _has_message(current, reply):
            if not any(m is pending for m in current.messages):
                current.messages.append(pending)
            current.messages.append(reply)
        current.updated_at = reply.timestamp
        return reply


def _has_message(chat: Chat, message: ChatMessage) -> bool:
    return any(
        m.role == message.role and m.content == message.content and m.timestamp == message.timestamp
        for m in chat.messages
    )
