"""FastAPI dependencies: identity resolution and injected collaborators."""
import logging
from typing import Iterator, Optional

import jwt
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from chatdesk.config import Settings
from chatdesk.core.errors import Unauthenticated
from chatdesk.database import ConversationStore
from chatdesk.services.chat_service import ChatService
from chatdesk.services.completion import CompletionGateway

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> ConversationStore:
    return request.app.state.store


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


def get_completion_gateway(request: Request) -> CompletionGateway:
    return request.app.state.gateway


def get_db(store: ConversationStore = Depends(get_store)) -> Iterator[Session]:
    with store.session() as session:
        yield session


def resolve_identity(token: str, settings: Settings) -> Optional[str]:
    """
    Verify a bearer token issued by the auth provider.

    Returns:
        The ``sub`` claim, or None if the token is invalid or has no subject
    """
    if not settings.AUTH_JWT_SECRET:
        logger.error("AUTH_JWT_SECRET is not configured, rejecting token")
        return None

    options = {"require": ["sub"]}
    try:
        claims = jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=settings.AUTH_JWT_ALGORITHMS,
            issuer=settings.AUTH_JWT_ISSUER,
            audience=settings.AUTH_JWT_AUDIENCE,
            options=options,
        )
    except jwt.PyJWTError as e:
        logger.warning(f"Rejected bearer token: {e}")
        return None

    subject = claims.get("sub")
    return str(subject) if subject else None


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings_dep),
) -> str:
    """
    Resolve the caller's identity from the Authorization header.

    Raises:
        Unauthenticated: no header, or the token does not verify
    """
    if credentials is None:
        raise Unauthenticated()

    user_id = resolve_identity(credentials.credentials, settings)
    if user_id is None:
        raise Unauthenticated()
    return user_id
