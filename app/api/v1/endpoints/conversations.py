"""Conversation endpoints."""

from uuid import UUID

from fastapi import APIRouter, status

from app.dependencies import CurrentPrincipal, DatabaseSession
from app.schemas.conversations import (
    ConversationActivity,
    ConversationCreate,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
)
from app.services.conversation_service import ConversationService

router = APIRouter()


@router.get(
    "",
    response_model=list[ConversationResponse],
    status_code=status.HTTP_200_OK,
    summary="List conversations",
)
async def list_conversations(
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> list[ConversationResponse]:
    """The caller's conversations, each with its latest message."""
    return await ConversationService(db).list_for(principal)


@router.post(
    "",
    response_model=ConversationResponse,
    status_code=status.HTTP_200_OK,
    summary="Open a conversation",
)
async def create_conversation(
    data: ConversationCreate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> ConversationResponse:
    """
    Return the pair's conversation, creating it if needed.

    Args:
        data: Patient and doctor ids
        principal: One of the two parties
        db: Database session

    Returns:
        The single conversation for the pair
    """
    return await ConversationService(db).create(principal, data)


@router.get(
    "/{conversation_id}/active",
    response_model=ConversationActivity,
    status_code=status.HTTP_200_OK,
    summary="Check whether messaging is open",
)
async def conversation_active(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> ConversationActivity:
    """Messaging stays open for seven days after the last completed appointment."""
    return await ConversationService(db).active(conversation_id, principal)


@router.get(
    "/{conversation_id}/messages",
    response_model=list[MessageResponse],
    status_code=status.HTTP_200_OK,
    summary="List messages",
)
async def list_messages(
    conversation_id: UUID,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> list[MessageResponse]:
    """All messages of the conversation, oldest first."""
    return await ConversationService(db).get_messages(conversation_id, principal)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def post_message(
    conversation_id: UUID,
    data: MessageCreate,
    principal: CurrentPrincipal,
    db: DatabaseSession,
) -> MessageResponse:
    """
    Post a message.

    Raises:
        BadRequestException: If the content is blank
        ForbiddenException: If the messaging window has closed
    """
    return await ConversationService(db).post_message(conversation_id, principal, data.content)
