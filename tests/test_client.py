"""Tests for the client session state and composer.

Logic tests use an in-memory fake API; the end-to-end tests drive the real
application through ``httpx.ASGITransport``.
"""
import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from chatdesk.client import (
    ApiError,
    Chat,
    ChatApiClient,
    ChatMessage,
    ChatSessionState,
    Composer,
    MessageStatus,
)
from chatdesk.core.types import MessageRole, utcnow

BASE = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


def _chat(chat_id: int, minutes: int = 0, created_minutes: int = 0) -> Chat:
    return Chat(
        id=chat_id,
        user_id="u1",
        name="New Chat",
        messages=[],
        created_at=BASE + timedelta(minutes=created_minutes),
        updated_at=BASE + timedelta(minutes=minutes),
    )


class FakeApi:
    def __init__(self, chats=None, reply="world"):
        self.chats = list(chats or [])
        self.reply = reply
        self.error = None
        self.calls = []
        self.gate = None
        self.reply_timestamp = None
        self._next_id = 100

    async def list_chats(self):
        self.calls.append("list")
        return [chat.model_copy(deep=True) for chat in self.chats]

    async def create_chat(self):
        self.calls.append("create")
        self._next_id += 1
        chat = _chat(self._next_id, minutes=60, created_minutes=60)
        self.chats.append(chat)
        return chat.model_copy(deep=True)

    async def rename_chat(self, chat_id, name):
        self.calls.append("rename")
        if self.error:
            raise self.error

    async def delete_chat(self, chat_id):
        self.calls.append("delete")
        self.chats = [c for c in self.chats if c.id != chat_id]

    async def complete(self, chat_id, prompt):
        self.calls.append(("complete", chat_id, prompt))
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return ChatMessage(
            role=MessageRole.ASSISTANT,
            content=self.reply,
            timestamp=self.reply_timestamp or utcnow(),
        )


def _state(api):
    notices = []
    return ChatSessionState(api, notify=notices.append), notices


class TestSessionState:
    async def test_refresh_on_empty_account_creates_and_selects_one(self):
        api = FakeApi()
        state, notices = _state(api)

        assert await state.refresh() is True

        assert len(state.chats) == 1
        assert state.selected_chat is state.chats[0]
        assert api.calls == ["list", "create"]
        assert notices == []

    async def test_refresh_selects_most_recently_updated(self):
        api = FakeApi([_chat(1, minutes=5), _chat(2, minutes=30), _chat(3, minutes=10)])
        state, _ = _state(api)

        await state.refresh()

        assert [c.id for c in state.chats] == [2, 3, 1]
        assert state.selected_chat.id == 2

    async def test_set_user_refreshes_only_once(self):
        api = FakeApi([_chat(1)])
        state, _ = _state(api)

        await state.set_user("u1")
        await state.set_user("u2")

        assert state.user == "u2"
        assert api.calls == ["list"]

    async def test_set_user_none_does_not_refresh(self):
        api = FakeApi([_chat(1)])
        state, _ = _state(api)

        await state.set_user(None)

        assert api.calls == []
        assert state.selected_chat is None

    async def test_create_and_refresh_returns_new_chat(self):
        api = FakeApi([_chat(1)])
        state, _ = _state(api)
        await state.set_user("u1")

        created = await state.create_and_refresh()

        assert created is not None
        assert state.selected_chat is created
        assert len(state.chats) == 2

    async def test_failures_become_notifications(self):
        api = FakeApi([_chat(1)])
        api.error = ApiError("Chat not found", status_code=404)
        state, notices = _state(api)

        assert await state.rename_chat(1, "x") is False
        assert notices == ["Chat not found"]

    async def test_delete_refreshes(self):
        api = FakeApi([_chat(1, minutes=1), _chat(2, minutes=2)])
        state, _ = _state(api)
        await state.refresh()

        await state.delete_chat(2)

        assert [c.id for c in state.chats] == [1]
        assert state.selected_chat.id == 1


class TestComposer:
    async def _ready(self, api):
        state, notices = _state(api)
        await state.set_user("u1")
        return state, notices, Composer(state)

    async def test_submit_appends_user_then_assistant(self):
        state, notices, composer = await self._ready(FakeApi([_chat(1)]))
        composer.set_prompt("hello")

        reply = await composer.submit()

        assert reply.content == "world"
        transcript = state.selected_chat.messages
        assert [(m.role, m.content, m.status) for m in transcript] == [
            (MessageRole.USER, "hello", MessageStatus.CONFIRMED),
            (MessageRole.ASSISTANT, "world", MessageStatus.CONFIRMED),
        ]
        assert state.chats[0].messages is transcript
        assert composer.prompt == ""
        assert composer.is_loading is False
        assert notices == []

    async def test_failure_retracts_message_and_restores_prompt(self):
        api = FakeApi([_chat(1)])
        api.error = ApiError("model overloaded", status_code=500)
        state, notices, composer = await self._ready(api)
        composer.set_prompt("hello")

        assert await composer.submit() is None

        assert state.selected_chat.messages == []
        assert composer.prompt == "hello"
        assert notices == ["model overloaded"]

    async def test_unauthorized_failure_message(self):
        api = FakeApi([_chat(1)])
        api.error = ApiError("User not authenticated", status_code=401)
        _, notices, composer = await self._ready(api)
        composer.set_prompt("hello")

        await composer.submit()

        assert notices == ["Authentication failed. Please log in again."]

    async def test_optimistic_message_is_pending_in_flight(self):
        api = FakeApi([_chat(1)])
        api.gate = asyncio.Event()
        state, _, composer = await self._ready(api)
        composer.set_prompt("hello")

        task = asyncio.ensure_future(composer.submit())
        await asyncio.sleep(0)

        assert [m.status for m in state.selected_chat.messages] == [MessageStatus.PENDING]
        assert composer.is_loading is True
        api.gate.set()
        await task
        assert composer.is_loading is False

    async def test_second_submit_rejected_while_in_flight(self):
        api = FakeApi([_chat(1)])
        api.gate = asyncio.Event()
        state, notices, composer = await self._ready(api)
        composer.set_prompt("first")

        first = asyncio.ensure_future(composer.submit())
        await asyncio.sleep(0)
        composer.set_prompt("second")
        assert await composer.submit() is None
        api.gate.set()
        await first

        assert notices == ["Wait for the previous prompt response"]
        assert [c for c in api.calls if c[0] == "complete"] == [("complete", 1, "first")]
        assert composer.prompt == "second"

    async def test_reply_lands_in_chat_refreshed_during_request(self):
        api = FakeApi([_chat(1)])
        api.gate = asyncio.Event()
        state, notices, composer = await self._ready(api)
        held = state.selected_chat
        composer.set_prompt("hello")

        task = asyncio.ensure_future(composer.submit())
        await asyncio.sleep(0)
        assert await state.rename_chat(1, "other") is True
        api.gate.set()
        reply = await task

        assert reply.content == "world"
        assert state.selected_chat is not held
        assert [(m.role, m.content, m.status) for m in state.selected_chat.messages] == [
            (MessageRole.USER, "hello", MessageStatus.CONFIRMED),
            (MessageRole.ASSISTANT, "world", MessageStatus.CONFIRMED),
        ]
        assert state.selected_chat.updated_at == reply.timestamp
        assert notices == []

    async def test_reply_already_in_refreshed_chat_is_not_duplicated(self):
        api = FakeApi([_chat(1)])
        api.gate = asyncio.Event()
        state, _, composer = await self._ready(api)
        composer.set_prompt("hello")

        task = asyncio.ensure_future(composer.submit())
        await asyncio.sleep(0)
        stored_at = utcnow()
        api.chats[0].messages = [
            ChatMessage(role=MessageRole.USER, content="hello", timestamp=stored_at),
            ChatMessage(role=MessageRole.ASSISTANT, content="world", timestamp=stored_at),
        ]
        api.reply_timestamp = stored_at
        await state.refresh()
        api.gate.set()
        await task

        assert [m.content for m in state.selected_chat.messages] == ["hello", "world"]

    async def test_requires_user(self):
        api = FakeApi([_chat(1)])
        state, notices = _state(api)
        composer = Composer(state)
        composer.set_prompt("hello")

        assert await composer.submit() is None
        assert notices == ["Login to send message"]

    async def test_falls_back_to_most_recently_created_chat(self):
        api = FakeApi()
        state, _ = _state(api)
        state.user = "u1"
        state.chats = [_chat(1, created_minutes=1), _chat(2, created_minutes=9), _chat(3, created_minutes=4)]
        composer = Composer(state)
        composer.set_prompt("hello")

        await composer.submit()

        assert state.selected_chat.id == 2
        assert ("complete", 2, "hello") in api.calls

    async def test_no_chat_selected(self):
        api = FakeApi()
        state, notices = _state(api)
        state.user = "u1"
        composer = Composer(state)
        composer.set_prompt("hello")

        assert await composer.submit() is None
        assert notices == ["No chat selected"]

    async def test_enter_submits_shift_enter_does_not(self):
        api = FakeApi([_chat(1)])
        _, _, composer = await self._ready(api)
        composer.set_prompt("hello")

        assert await composer.handle_key("Enter", shift=True) is None
        assert composer.prompt == "hello"

        reply = await composer.handle_key("Enter")
        assert reply.content == "world"


class TestEndToEnd:
    async def test_session_against_real_app(self, app, make_token, gateway):
        transport = httpx.ASGITransport(app=app)
        async with ChatApiClient("http://test", token=make_token("u1"), transport=transport) as api:
            state, notices = _state(api)
            await state.set_user("u1")

            assert len(state.chats) == 1
            assert state.selected_chat.name == "New Chat"

            composer = Composer(state)
            composer.set_prompt("hello")
            reply = await composer.submit()

            assert reply.content == "world"
            stored = await api.list_chats()
            assert [(m.role, m.content) for m in stored[0].messages] == [
                (MessageRole.USER, "hello"),
                (MessageRole.ASSISTANT, "world"),
            ]
            assert notices == []

    async def test_api_error_carries_status(self, app):
        transport = httpx.ASGITransport(app=app)
        async with ChatApiClient("http://test", token=None, transport=transport) as api:
            with pytest.raises(ApiError) as exc_info:
                await api.list_chats()

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "User not authenticated"

    async def test_token_provider_is_awaited(self, app, make_token):
        async def token():
            return make_token("u7")

        transport = httpx.ASGITransport(app=app)
        async with ChatApiClient("http://test", token=token, transport=transport) as api:
            created = await api.create_chat()

        assert created.user_id == "u7"
        assert created.messages == []


def _malformed_api() -> ChatApiClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/api/chat/get":
            return httpx.Response(200, json={"success": True, "data": [{"id": 1}]})
        if request.url.path == "/api/chat/ai":
            data = {"role": "narrator", "content": "world", "timestamp": "not a time"}
            return httpx.Response(200, json={"success": True, "data": data})
        return httpx.Response(200, json=["not", "an", "envelope"])

    return ChatApiClient("http://test", token="t", transport=httpx.MockTransport(handler))


class TestMalformedResponses:
    async def test_list_with_bad_rows_is_api_error(self):
        async with _malformed_api() as api:
            with pytest.raises(ApiError, match="Malformed response"):
                await api.list_chats()

    async def test_non_object_body_is_api_error(self):
        async with _malformed_api() as api:
            with pytest.raises(ApiError):
                await api.create_chat()

    async def test_refresh_reports_instead_of_raising(self):
        async with _malformed_api() as api:
            state, notices = _state(api)

            assert await state.refresh() is False

        assert state.chats == []
        assert notices == ["Malformed response from server"]

    async def test_bad_reply_retracts_message_and_restores_prompt(self):
        async with _malformed_api() as api:
            state, notices = _state(api)
            state.user = "u1"
            state.chats = [_chat(1)]
            state.select(1)
            composer = Composer(state)
            composer.set_prompt("hello")

            assert await composer.submit() is None

        assert state.selected_chat.messages == []
        assert composer.prompt == "hello"
        assert composer.is_loading is False
        assert notices == ["Malformed response from server"]
