from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional
from uuid import UUID

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.orm import Session

from bolt.db.enums import ChatFileStatusEnum
from bolt.db.models import ChatFile, ChatMessage, ChatSession
from bolt.db.repositories.base import Repository


class ChatSessionsRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def create(self, *, user_id: UUID, name: Optional[str] = None) -> ChatSession:
        chat = ChatSession(user_id=user_id, name=(name or "").strip() or "New Chat")
        return self.save(chat)

    def get(self, *, session_id: UUID, user_id: UUID) -> Optional[ChatSession]:
        stmt = select(ChatSession).where(
            ChatSession.id == session_id,
            ChatSession.user_id == user_id,
            ChatSession.is_active.is_(True),
        )
        return self.session.scalars(stmt).first()

    def list_active(self, *, user_id: UUID) -> list[ChatSession]:
        stmt = (
            select(ChatSession)
            .where(ChatSession.user_id == user_id, ChatSession.is_active.is_(True))
            .order_by(ChatSession.last_activity_at.desc())
        )
        return list(self.session.scalars(stmt).all())

    def list_inactive_since(self, *, cutoff: datetime) -> list[ChatSession]:
        stmt = select(ChatSession).where(
            ChatSession.is_active.is_(True),
            ChatSession.last_activity_at < cutoff,
        )
        return list(self.session.scalars(stmt).all())

    def try_acquire_processing(self, *, session_id: UUID, stale_before: datetime) -> bool:
        """
        Atomically flip is_processing to true.

        Succeeds when the flag is clear or was set before ``stale_before``; the
        conditional UPDATE keeps two concurrent requests from both winning.
        """
        now = datetime.now(timezone.utc)
        stmt = (
            update(ChatSession)
            .where(
                ChatSession.id == session_id,
                or_(
                    ChatSession.is_processing.is_(False),
                    ChatSession.processing_started_at.is_(None),
                    ChatSession.processing_started_at < stale_before,
                ),
            )
            .values(is_processing=True, processing_started_at=now, updated_at=now)
            .returning(ChatSession.id)
            .execution_options(synchronize_session=False)
        )
        acquired = self.session.execute(stmt).scalar_one_or_none()
        self.session.commit()
        return acquired is not None

    def release_processing(self, *, session_id: UUID) -> None:
        now = datetime.now(timezone.utc)
        stmt = (
            update(ChatSession)
            .where(ChatSession.id == session_id)
            .values(is_processing=False, processing_started_at=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        self.session.execute(stmt)
        self.session.commit()

    def next_position(self, *, session_id: UUID) -> int:
        stmt = select(func.max(ChatMessage.position)).where(ChatMessage.session_id == session_id)
        current = self.session.execute(stmt).scalar_one_or_none()
        return 0 if current is None else current + 1

    def list_messages(self, *, session_id: UUID) -> list[ChatMessage]:
        stmt = (
            select(ChatMessage)
            .where(ChatMessage.session_id == session_id)
            .order_by(ChatMessage.position.asc())
        )
        return list(self.session.scalars(stmt).all())

    def sum_tokens(self, *, session_id: UUID) -> int:
        stmt = select(func.coalesce(func.sum(ChatMessage.tokens), 0)).where(ChatMessage.session_id == session_id)
        return int(self.session.execute(stmt).scalar_one())

    def list_files(self, *, session_id: UUID) -> list[ChatFile]:
        stmt = select(ChatFile).where(ChatFile.session_id == session_id).order_by(ChatFile.created_at.asc())
        return list(self.session.scalars(stmt).all())

    def count_files(self, *, session_id: UUID) -> int:
        stmt = select(func.count(ChatFile.id)).where(ChatFile.session_id == session_id)
        return int(self.session.execute(stmt).scalar_one())

    def get_file(self, *, session_id: UUID, file_id: UUID) -> Optional[ChatFile]:
        stmt = select(ChatFile).where(ChatFile.id == file_id, ChatFile.session_id == session_id)
        return self.session.scalars(stmt).first()

    def unprocessed_files(self, *, session_id: UUID, file_ids: Optional[Iterable[UUID]] = None) -> list[ChatFile]:
        stmt = select(ChatFile).where(ChatFile.session_id == session_id, ChatFile.is_processed.is_(False))
        if file_ids is not None:
            stmt = stmt.where(ChatFile.id.in_(list(file_ids)))
        stmt = stmt.order_by(ChatFile.created_at.asc())
        return list(self.session.scalars(stmt).all())

    def mark_files_processed(self, *, file_ids: list[UUID]) -> None:
        if not file_ids:
            return
        stmt = (
            update(ChatFile)
            .where(ChatFile.id.in_(file_ids))
            .values(is_processed=True, status=ChatFileStatusEnum.processed.value)
            .execution_options(synchronize_session="fetch")
        )
        self.session.execute(stmt)
        self.session.commit()

    def clear_conversation(self, *, chat: ChatSession) -> None:
        self.session.execute(delete(ChatMessage).where(ChatMessage.session_id == chat.id))
        self.session.execute(delete(ChatFile).where(ChatFile.session_id == chat.id))
        chat.total_tokens = 0
        self.session.commit()
        self.session.expire(chat)

    def deactivate(self, *, chat: ChatSession) -> ChatSession:
        chat.is_active = False
        chat.is_processing = False
        chat.processing_started_at = None
        return self.save(chat)
