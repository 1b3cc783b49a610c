from __future__ import annotations

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from bolt.auth.dependencies import AuthContext, get_current_user
from bolt.db.deps import get_session
from bolt.db.models import AssistantConversation
from bolt.db.repositories.assistant_conversations import AssistantConversationsRepository
from bolt.schemas.assistant import (
    AssistantSendRequest,
    ConversationArchiveRequest,
    ConversationRenameRequest,
    ConversationUpsertRequest,
)
from bolt.services.assistant import (
    AssistantSendError,
    AssistantService,
    AssistantUser,
    available_agents,
    normalize_agent,
    resolve_webhook_url,
    serialize_conversation,
)

router = APIRouter(prefix="/assistant", tags=["assistant"])
logger = logging.getLogger(__name__)


def _get_conversation_or_404(session: Session, auth: AuthContext, conversation_id: str) -> AssistantConversation:
    conversation = AssistantConversationsRepository(session).get(
        user_id=auth.user_id,
        conversation_id=conversation_id,
    )
    if not conversation:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Conversation not found")
    return conversation


@router.get("/conversations")
def list_conversations(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    conversations = AssistantConversationsRepository(session).list_for_user(user_id=auth.user_id)
    return {
        "success": True,
        "conversations": [
            serialize_conversation(conversation, include_messages=False) for conversation in conversations
        ],
    }


@router.get("/conversations/{conversation_id}")
def get_conversation(
    conversation_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    conversation = _get_conversation_or_404(session, auth, conversation_id)
    return {"success": True, "conversation": serialize_conversation(conversation)}


@router.post("/conversations")
def upsert_conversation(
    payload: ConversationUpsertRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    repo = AssistantConversationsRepository(session)
    conversation_id = payload.conversationId or str(uuid4())
    conversation = repo.get(user_id=auth.user_id, conversation_id=conversation_id)
    if conversation is None:
        conversation = AssistantConversation(
            user_id=auth.user_id,
            conversation_id=conversation_id,
            messages=[],
            is_archived=False,
        )
    conversation.title = payload.title or "New Conversation"
    if payload.messages is not None:
        conversation.messages = [message.model_dump(mode="json") for message in payload.messages]
    if payload.isArchived is not None:
        conversation.is_archived = payload.isArchived
    if payload.agent is not None:
        conversation.agent = normalize_agent(payload.agent.model_dump())
    conversation = repo.save(conversation)
    return {"success": True, "conversation": serialize_conversation(conversation)}


@router.patch("/conversations/{conversation_id}/rename")
def rename_conversation(
    conversation_id: str,
    payload: ConversationRenameRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    title = (payload.title or "").strip()
    if not title:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Conversation title is required")
    conversation = _get_conversation_or_404(session, auth, conversation_id)
    conversation.title = title
    conversation = AssistantConversationsRepository(session).save(conversation)
    return {"success": True, "conversation": serialize_conversation(conversation)}


@router.patch("/conversations/{conversation_id}/archive")
def archive_conversation(
    conversation_id: str,
    payload: ConversationArchiveRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    conversation = _get_conversation_or_404(session, auth, conversation_id)
    # No explicit value toggles the current state.
    conversation.is_archived = not conversation.is_archived if payload.isArchived is None else payload.isArchived
    conversation = AssistantConversationsRepository(session).save(conversation)
    return {"success": True, "conversation": serialize_conversation(conversation)}


@router.delete("/conversations/{conversation_id}")
def delete_conversation(
    conversation_id: str,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    conversation = _get_conversation_or_404(session, auth, conversation_id)
    AssistantConversationsRepository(session).delete(conversation)
    return {"success": True, "message": "Conversation deleted successfully"}


@router.get("/agents")
def list_agents(auth: AuthContext = Depends(get_current_user)):
    return {"success": True, "agents": available_agents()}


@router.post("/send")
def send_assistant_message(
    payload: AssistantSendRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    message = (payload.message or "").strip()
    if not payload.conversation_id or not message:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields")

    conversation = _get_conversation_or_404(session, auth, payload.conversation_id)
    webhook_url = resolve_webhook_url(payload.webhook_url, conversation)
    if not webhook_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No webhook URL available for this conversation",
        )

    logger.info(
        "Sending assistant message",
        extra={"conversation_id": conversation.conversation_id, "webhook_url": webhook_url},
    )
    service = AssistantService(session)
    try:
        content, conversation = service.send(
            conversation=conversation,
            user=AssistantUser(user_id=auth.user_id, name=auth.name, email=auth.email),
            message=message,
            webhook_url=webhook_url,
            is_google_analytics_agent=payload.is_google_analytics_agent,
            ga4_account_id=payload.ga4_account_id,
        )
    except AssistantSendError as exc:
        return ORJSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "Failed to process message via webhook",
                "message": str(exc),
                "updatedConversation": serialize_conversation(exc.conversation),
            },
        )
    return {
        "success": True,
        "response": content,
        "updatedConversation": serialize_conversation(conversation),
    }
