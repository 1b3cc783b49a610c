from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy.orm import Session

from bolt.config import settings
from bolt.db.enums import ChatRoleEnum
from bolt.db.models import AssistantConversation
from bolt.db.repositories.assistant_conversations import AssistantConversationsRepository
from bolt.services.google_analytics import query_google_analytics
from bolt.services.response_content import extract_response_content
from bolt.services.workflow_client import WorkflowClient

logger = logging.getLogger(__name__)

GA4_INTERNAL_TARGET = "/api/analytics/query"
ERROR_REPLY_PREFIX = "I'm sorry, I encountered an error while processing your request."

DEFAULT_AGENT = {
    "name": "BigQuery Agent",
    "webhookUrl": "",
    "icon": "database",
    "description": "Default agent",
}

_AGENT_METADATA = {
    "N8N_BIGQUERY": {
        "name": "BigQuery Agent",
        "icon": "database",
        "description": "AI agent specialized in querying and analyzing BigQuery data",
    },
    "N8N_GOOGLE_ANALYTICS_4": {
        "name": "Google Analytics 4",
        "icon": "chart-bar",
        "description": "AI agent for Google Analytics 4 insights and reporting",
    },
}


class AssistantSendError(RuntimeError):
    def __init__(self, message: str, conversation: AssistantConversation) -> None:
        super().__init__(message)
        self.conversation = conversation


@dataclass
class AssistantUser:
    user_id: Any
    name: Optional[str]
    email: str


def available_agents() -> list[dict[str, str]]:
    agents = []
    for setting_name, metadata in _AGENT_METADATA.items():
        webhook_url = getattr(settings, setting_name)
        if not webhook_url:
            continue
        agents.append({"id": setting_name, "webhookUrl": webhook_url, **metadata})
    return agents


def normalize_agent(agent: Optional[dict[str, Any]]) -> Optional[dict[str, str]]:
    if agent is None:
        return None
    return {key: agent.get(key) or default for key, default in DEFAULT_AGENT.items()}


def resolve_webhook_url(requested: Optional[str], conversation: AssistantConversation) -> Optional[str]:
    return requested or (conversation.agent or {}).get("webhookUrl") or settings.N8N_DEFAULT_ASSISTANT_WEBHOOK


def absolutize_url(url: str) -> str:
    if url.startswith("/") and settings.BACKEND_URL:
        return f"{settings.BACKEND_URL.rstrip('/')}{url}"
    return url


def serialize_conversation(conversation: AssistantConversation, *, include_messages: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {
        "conversationId": conversation.conversation_id,
        "title": conversation.title,
        "agent": conversation.agent,
        "isArchived": conversation.is_archived,
        "createdAt": conversation.created_at.isoformat() if conversation.created_at else None,
        "updatedAt": conversation.updated_at.isoformat() if conversation.updated_at else None,
    }
    if include_messages:
        data["messages"] = conversation.messages or []
    return data


class AssistantService:
    def __init__(self, session: Session, *, client: WorkflowClient | None = None) -> None:
        self.session = session
        self.repo = AssistantConversationsRepository(session)
        self.client = client or WorkflowClient(timeout_seconds=settings.ASSISTANT_TIMEOUT_SECONDS)

    def send(
        self,
        *,
        conversation: AssistantConversation,
        user: AssistantUser,
        message: str,
        webhook_url: str,
        is_google_analytics_agent: bool = False,
        ga4_account_id: Optional[str] = None,
    ) -> tuple[str, AssistantConversation]:
        conversation = self.repo.append_message(
            conversation=conversation,
            role=ChatRoleEnum.user.value,
            content=message,
        )
        payload: dict[str, Any] = {
            "conversationId": conversation.conversation_id,
            "message": message,
            "userId": str(user.user_id),
            "userName": user.name,
            "userEmail": user.email,
            "history": [
                {"role": item.get("role"), "content": item.get("content")} for item in conversation.messages or []
            ],
        }

        try:
            if is_google_analytics_agent and webhook_url == GA4_INTERNAL_TARGET:
                reply = query_google_analytics(
                    self.session,
                    user_id=user.user_id,
                    ga4_account_id=ga4_account_id,
                    payload=payload,
                )
            else:
                reply = self.client.post_json(absolutize_url(webhook_url), payload)
        except Exception as exc:
            logger.exception(
                "Assistant webhook request failed",
                extra={"conversation_id": conversation.conversation_id},
            )
            conversation = self.repo.append_message(
                conversation=conversation,
                role=ChatRoleEnum.assistant.value,
                content=f"{ERROR_REPLY_PREFIX} {exc}",
            )
            raise AssistantSendError(str(exc), conversation) from exc

        content = extract_response_content(reply)
        conversation = self.repo.append_message(
            conversation=conversation,
            role=ChatRoleEnum.assistant.value,
            content=content,
        )
        return content, conversation
