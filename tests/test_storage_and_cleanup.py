import re
from datetime import datetime, timedelta, timezone

import pytest

from bolt.db.enums import ChatRoleEnum
from bolt.db.models import ChatFile, ChatMessage, ChatSession
from bolt.db.repositories.chat_sessions import ChatSessionsRepository
from bolt.services.chat_sessions import ChatSessionService
from bolt.services.cleanup import cleanup_stale_chat_sessions
from bolt.services.file_storage import LocalFileStorage


def test_storage_key_format_and_round_trip(tmp_path):
    storage = LocalFileStorage(tmp_path)
    key = storage.save(original_name="Report.XLSX", content=b"bytes")

    assert re.fullmatch(r"\d{13}-\d+\.xlsx", key)
    assert storage.read(key) == b"bytes"
    assert storage.delete(key) is True
    assert storage.delete(key) is False


def test_storage_rejects_keys_outside_root(tmp_path):
    with pytest.raises(ValueError):
        LocalFileStorage(tmp_path).path_for("../escape.txt")


def _stale_session(db_session, auth_context, *, idle: timedelta) -> ChatSession:
    chat = ChatSessionsRepository(db_session).create(user_id=auth_context.user_id)
    service = ChatSessionService(db_session)
    service.append_message(chat, role=ChatRoleEnum.user, content="hello")
    service.upload_file(chat, filename="a.txt", content_type="text/plain", content=b"data")
    chat.last_activity_at = datetime.now(timezone.utc) - idle
    db_session.commit()
    return chat


def test_cleanup_deactivates_idle_sessions(db_session, auth_context, upload_dir):
    stale = _stale_session(db_session, auth_context, idle=timedelta(days=31))
    fresh = _stale_session(db_session, auth_context, idle=timedelta(days=1))

    summary = cleanup_stale_chat_sessions(db_session, days=30)

    assert summary == {"sessions": 1, "files": 1}
    db_session.refresh(stale)
    db_session.refresh(fresh)
    assert stale.is_active is False
    assert fresh.is_active is True
    assert db_session.query(ChatFile).filter(ChatFile.session_id == stale.id).count() == 0
    assert db_session.query(ChatMessage).filter(ChatMessage.session_id == stale.id).count() == 1
    assert len(list(upload_dir.iterdir())) == 1


def test_cleanup_dry_run_changes_nothing(db_session, auth_context, upload_dir):
    stale = _stale_session(db_session, auth_context, idle=timedelta(days=45))

    summary = cleanup_stale_chat_sessions(db_session, days=30, dry_run=True)

    assert summary == {"sessions": 1, "files": 1}
    db_session.refresh(stale)
    assert stale.is_active is True
    assert len(list(upload_dir.iterdir())) == 1
