from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from bolt.config import settings
from bolt.db.repositories.chat_sessions import ChatSessionsRepository
from bolt.services.file_storage import LocalFileStorage

logger = logging.getLogger(__name__)


def cleanup_stale_chat_sessions(
    session: Session,
    *,
    days: Optional[int] = None,
    storage: LocalFileStorage | None = None,
    dry_run: bool = False,
    now: Optional[datetime] = None,
) -> dict[str, int]:
    """
    Deactivate chat sessions idle for longer than ``days`` and drop their uploads.

    Messages are kept; file rows and the files on disk are removed.
    """
    days = settings.CHAT_SESSION_RETENTION_DAYS if days is None else days
    storage = storage or LocalFileStorage()
    repo = ChatSessionsRepository(session)
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=days)

    stale = repo.list_inactive_since(cutoff=cutoff)
    summary = {"sessions": len(stale), "files": 0}
    for chat in stale:
        files = repo.list_files(session_id=chat.id)
        summary["files"] += len(files)
        if dry_run:
            continue
        for chat_file in files:
            storage.delete(chat_file.storage_path)
            session.delete(chat_file)
        repo.deactivate(chat=chat)

    logger.info(
        "Stale chat session cleanup finished",
        extra={"cutoff": cutoff.isoformat(), "dry_run": dry_run, **summary},
    )
    return summary
