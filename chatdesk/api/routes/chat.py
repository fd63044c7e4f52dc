"""Chat endpoint routes.

Provides:
- POST /api/chat/create - Create an empty conversation
- GET  /api/chat/get    - List the caller's conversations with messages
- POST /api/chat/rename - Rename a conversation
- POST /api/chat/delete - Delete a conversation and its messages
- POST /api/chat/ai     - Send a prompt and receive the assistant reply
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from chatdesk.api.schemas import (
    CompletionRequest,
    ConversationEnvelope,
    ConversationListEnvelope,
    ConversationOut,
    DeleteRequest,
    Envelope,
    MessageEnvelope,
    MessageOut,
    RenameRequest,
)
from chatdesk.core.deps import (
    get_chat_service,
    get_completion_gateway,
    get_current_user,
    get_db,
    get_store,
)
from chatdesk.core.errors import CompletionProviderError, ConversationNotFound
from chatdesk.database import ConversationStore
from chatdesk.services.chat_service import ChatService
from chatdesk.services.completion import CompletionGateway

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])


def _persistence_failure(store: ConversationStore, e: SQLAlchemyError) -> HTTPException:
    logger.error(f"Database error, invalidating connection: {e}")
    store.invalidate()
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Database unavailable",
    )


def _not_found(e: ConversationNotFound) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.post("/create", response_model=ConversationEnvelope, response_model_exclude_none=True)
def create_chat(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_db),
    store: ConversationStore = Depends(get_store),
    chat_service: ChatService = Depends(get_chat_service),
) -> ConversationEnvelope:
    """
    Create an empty conversation owned by the caller.

    The created conversation is returned so callers can select it without
    re-fetching the list.
    """
    try:
        conversation = chat_service.create_conversation(session, user_id)
    except SQLAlchemyError as e:
        raise _persistence_failure(store, e)

    return ConversationEnvelope(
        message="Chat created",
        data=ConversationOut.from_row(conversation, []),
    )


@router.get("/get", response_model=ConversationListEnvelope, response_model_exclude_none=True)
def list_chats(
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_db),
    store: ConversationStore = Depends(get_store),
    chat_service: ChatService = Depends(get_chat_service),
) -> ConversationListEnvelope:
    """
    List all conversations for the authenticated user, each with its transcript.

    Ordering of the list is not part of the contract; clients sort by updatedAt.
    """
    try:
        conversations = chat_service.list_conversations(session, user_id)
        result = [
            ConversationOut.from_row(
                conv,
                chat_service.get_conversation_history(session, conv.id, user_id),
            )
            for conv in conversations
        ]
    except SQLAlchemyError as e:
        raise _persistence_failure(store, e)

    return ConversationListEnvelope(data=result)


@router.post("/rename", response_model=Envelope, response_model_exclude_none=True)
def rename_chat(
    request: RenameRequest,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_db),
    store: ConversationStore = Depends(get_store),
    chat_service: ChatService = Depends(get_chat_service),
) -> Envelope:
    """
    Rename a conversation owned by the caller.

    Raises:
        HTTPException: 404 if not owned (strict ownership only)
    """
    try:
        chat_service.rename_conversation(session, user_id, request.chat_id, request.name)
    except ConversationNotFound as e:
        raise _not_found(e)
    except SQLAlchemyError as e:
        raise _persistence_failure(store, e)

    return Envelope(message="Chat Renamed")


@router.post("/delete", response_model=Envelope, response_model_exclude_none=True)
def delete_chat(
    request: DeleteRequest,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_db),
    store: ConversationStore = Depends(get_store),
    chat_service: ChatService = Depends(get_chat_service),
) -> Envelope:
    """
    Delete a conversation and all messages.

    Raises:
        HTTPException: 404 if not owned (strict ownership only)
    """
    try:
        chat_service.delete_conversation(session, user_id, request.chat_id)
    except ConversationNotFound as e:
        raise _not_found(e)
    except SQLAlchemyError as e:
        raise _persistence_failure(store, e)

    return Envelope(message="Chat Deleted")


@router.post("/ai", response_model=MessageEnvelope, response_model_exclude_none=True)
def send_chat_message(
    request: CompletionRequest,
    user_id: str = Depends(get_current_user),
    session: Session = Depends(get_db),
    store: ConversationStore = Depends(get_store),
    chat_service: ChatService = Depends(get_chat_service),
    gateway: CompletionGateway = Depends(get_completion_gateway),
) -> MessageEnvelope:
    """
    Send a prompt to the completion provider within a conversation.

    Flow:
    1. Resolve the owned conversation
    2. Call the provider with the prompt
    3. Store user and assistant messages together
    4. Return only the assistant message

    Raises:
        HTTPException: 404 if conversation not found or not owned
        HTTPException: 500 on provider or database failure
    """
    try:
        assistant_msg = chat_service.send_message(
            session,
            gateway,
            user_id,
            request.chat_id,
            request.prompt,
        )
    except ConversationNotFound as e:
        raise _not_found(e)
    except CompletionProviderError as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.message,
        )
    except SQLAlchemyError as e:
        raise _persistence_failure(store, e)

    return MessageEnvelope(data=MessageOut.from_row(assistant_msg))
