"""Application settings loaded from environment variables and ``.env``."""
from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Central configuration for the chat backend.

    Keep all credentials and provider settings here; handlers and services
    receive values from this object, never from ``os.environ`` directly.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # API
    API_TITLE: str = "Chatdesk API"
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Persistence
    DATABASE_URL: str = "sqlite:///./chatdesk.db"

    # Completion provider (OpenAI-compatible, Groq by default)
    OPENAI_API_KEY: str = ""
    OPENAI_BASE_URL: Optional[str] = "https://api.groq.com/openai/v1"
    OPENAI_MODEL: str = "llama-3.3-70b-versatile"
    OPENAI_TIMEOUT: float = 60.0

    # Identity (bearer tokens issued by the external auth provider)
    AUTH_JWT_SECRET: str = ""
    AUTH_JWT_ALGORITHMS: List[str] = ["HS256"]
    AUTH_JWT_ISSUER: Optional[str] = None
    AUTH_JWT_AUDIENCE: Optional[str] = None

    # Conversations
    DEFAULT_CHAT_NAME: str = "New Chat"
    # False keeps the legacy behaviour: rename/delete of a chat the caller
    # does not own reports success and changes nothing.
    STRICT_OWNERSHIP: bool = True


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
