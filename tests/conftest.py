import asyncio
import inspect
from typing import Callable, Optional

import jwt
import pytest
from fastapi.testclient import TestClient

from chatdesk.config import Settings
from chatdesk.core.errors import CompletionProviderError
from chatdesk.database import ConversationStore
from chatdesk.main import create_app
from chatdesk.services.chat_service import ChatService

JWT_SECRET = "test-secret-key-for-testing-only-do-not-use-in-production"


class StubGateway:
    """Completion gateway double: fixed reply or fixed failure, records prompts."""

    def __init__(self, reply: str = "world", error: Optional[str] = None):
        self.reply = reply
        self.error = error
        self.prompts: list[str] = []

    def complete(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise CompletionProviderError(self.error)
        return self.reply


def pytest_pyfunc_call(pyfuncitem):
    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames
            if name in pyfuncitem.funcargs
        }
        asyncio.run(pyfuncitem.obj(**call_kwargs))
        return True
    return None


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite://",
        AUTH_JWT_SECRET=JWT_SECRET,
        OPENAI_API_KEY="test",
        STRICT_OWNERSHIP=True,
    )


@pytest.fixture
def store(settings) -> ConversationStore:
    store = ConversationStore(settings.DATABASE_URL)
    store.init()
    yield store
    store.close()


@pytest.fixture
def db_session(store):
    with store.session() as session:
        yield session


@pytest.fixture
def chat_service() -> ChatService:
    return ChatService()


@pytest.fixture
def gateway() -> StubGateway:
    return StubGateway()


@pytest.fixture
def app(settings, store, gateway):
    return create_app(settings, store=store, gateway=gateway)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_token() -> Callable[[str], str]:
    def _make(user_id: str) -> str:
        return jwt.encode({"sub": user_id}, JWT_SECRET, algorithm="HS256")

    return _make


@pytest.fixture
def auth_headers(make_token) -> Callable[[str], dict]:
    def _headers(user_id: str = "u1") -> dict:
        return {"Authorization": f"Bearer {make_token(user_id)}"}

    return _headers
