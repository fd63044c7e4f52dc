"""Async HTTP client for the chat API envelope."""
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

import httpx
from pydantic import BaseModel, ValidationError

from chatdesk.client.models import Chat, ChatMessage, MessageStatus

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Awaitable[Optional[str]]]
ModelT = TypeVar("ModelT", bound=BaseModel)


class ApiError(Exception):
    """A failed API call: transport error, non-2xx status, or ``success: false``."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ChatApiClient:
    """
    Thin wrapper over ``httpx.AsyncClient`` speaking the chat endpoints.

    The bearer token is fetched per request from ``token`` (a string or an
    async callable), so a refreshed token is picked up without rebuilding
    the client.
    """

    def __init__(
        self,
        base_url: str,
        token: Union[str, TokenProvider, None] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 75.0,
    ):
        self._token = token
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _headers(self) -> dict[str, str]:
        token = self._token
        if callable(token):
            token = await token()
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def _request(self, method: str, path: str, body: Optional[dict] = None) -> Any:
        try:
            response = await self._http.request(
                method, path, json=body, headers=await self._headers()
            )
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiError(str(e) or "Network error") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}

        if response.is_error or not payload.get("success"):
            message = payload.get("message") or payload.get("error") or response.reason_phrase
            raise ApiError(message or "Request failed", status_code=response.status_code)
        return payload.get("data")

    async def create_chat(self) -> Chat:
        data = await self._request("POST", "/api/chat/create", {})
        return _parse(Chat, data)

    async def list_chats(self) -> list[Chat]:
        data = await self._request("GET", "/api/chat/get")
        if data is None:
            return []
        if not isinstance(data, list):
            raise ApiError("Malformed response from server")
        return [_parse(Chat, item) for item in data]

    async def rename_chat(self, chat_id: int, name: str) -> None:
        await self._request("POST", "/api/chat/rename", {"chatId": chat_id, "name": name})

    async def delete_chat(self, chat_id: int) -> None:
        await self._request("POST", "/api/chat/delete", {"chatId": chat_id})

    async def complete(self, chat_id: int, prompt: str) -> ChatMessage:
        data = await self._request("POST", "/api/chat/ai", {"chatId": chat_id, "prompt": prompt})
        if not isinstance(data, dict) or not data.get("content"):
            raise ApiError("No content in AI response")
        message = _parse(ChatMessage, data)
        message.status = MessageStatus.CONFIRMED
        return message


def _parse(model: type[ModelT], data: Any) -> ModelT:
    """Validate response data, reporting a schema mismatch as an ApiError."""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.warning(f"Malformed {model.__name__} in response: {e}")
        raise ApiError("Malformed response from server") from e
