from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bolt.db.models import AssistantConversation, utcnow
from bolt.db.repositories.base import Repository


class AssistantConversationsRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def get(self, *, user_id: UUID, conversation_id: str) -> Optional[AssistantConversation]:
        stmt = select(AssistantConversation).where(
            AssistantConversation.user_id == user_id,
            AssistantConversation.conversation_id == conversation_id,
        )
        return self.session.scalars(stmt).first()

    def list_for_user(self, *, user_id: UUID) -> list[AssistantConversation]:
        stmt = (
            select(AssistantConversation)
            .where(AssistantConversation.user_id == user_id)
            .order_by(AssistantConversation.updated_at.desc())
        )
        return list(self.session.scalars(stmt).all())

    def append_message(self, *, conversation: AssistantConversation, role: str, content: str) -> AssistantConversation:
        message: dict[str, Any] = {"role": role, "content": content, "timestamp": utcnow().isoformat()}
        # Reassign so the JSON column is flagged dirty.
        conversation.messages = [*(conversation.messages or []), message]
        conversation.updated_at = utcnow()
        return self.save(conversation)
