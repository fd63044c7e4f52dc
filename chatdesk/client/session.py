"""Client session state: the signed-in user, their chats, and the selection."""
import logging
from typing import Callable, Optional

from chatdesk.client.api import ApiError, ChatApiClient
from chatdesk.client.models import Chat

logger = logging.getLogger(__name__)

Notifier = Callable[[str], None]


def _log_notification(text: str) -> None:
    logger.warning(text)


class ChatSessionState:
    """
    State shared by the sidebar and the composer for one client session.

    ``selected_chat`` is always the same object as its entry in ``chats``,
    so appending to one updates both views.

    API failures are reported through ``notify`` and never raised; no
    failure ends the session.
    """

    def __init__(self, api: ChatApiClient, notify: Optional[Notifier] = None):
        self.api = api
        self.notify = notify or _log_notification
        self.user: Optional[str] = None
        self.chats: list[Chat] = []
        self._selected_id: Optional[int] = None
        self._bootstrapped = False

    @property
    def selected_chat(self) -> Optional[Chat]:
        if self._selected_id is None:
            return None
        return self.find(self._selected_id)

    def find(self, chat_id: int) -> Optional[Chat]:
        for chat in self.chats:
            if chat.id == chat_id:
                return chat
        return None

    def select(self, chat_id: Optional[int]) -> Optional[Chat]:
        if chat_id is not None and self.find(chat_id) is None:
            return None
        self._selected_id = chat_id
        return self.selected_chat

    async def set_user(self, user: Optional[str]) -> None:
        """
        Mirror the auth provider's current user.

        The first time a user becomes available the chats are loaded once;
        later changes only update the mirror.
        """
        self.user = user
        if user and not self._bootstrapped:
            self._bootstrapped = True
            await self.refresh()

    async def refresh(self) -> bool:
        """
        Reload chats and select the most recently updated one.

        An empty account gets exactly one new chat, taken from the create
        response rather than re-listing.

        Returns:
            True if the state was refreshed
        """
        try:
            chats = await self.api.list_chats()
            if not chats:
                chats = [await self.api.create_chat()]
        except ApiError as e:
            self.notify(e.message)
            return False

        chats.sort(key=lambda chat: chat.updated_at, reverse=True)
        self.chats = chats
        self._selected_id = chats[0].id
        return True

    async def create_chat(self) -> Optional[Chat]:
        if not self.user:
            return None
        try:
            return await self.api.create_chat()
        except ApiError as e:
            self.notify(e.message)
            return None

    async def create_and_refresh(self) -> Optional[Chat]:
        """Create a chat, reload the list, and return the new chat."""
        created = await self.create_chat()
        if created is None:
            return None
        await self.refresh()
        return self.find(created.id)

    async def rename_chat(self, chat_id: int, name: str) -> bool:
        try:
            await self.api.rename_chat(chat_id, name)
        except ApiError as e:
            self.notify(e.message)
            return False
        return await self.refresh()

    async def delete_chat(self, chat_id: int) -> bool:
        try:
            await self.api.delete_chat(chat_id)
        except ApiError as e:
            self.notify(e.message)
            return False
        return await self.refresh()
