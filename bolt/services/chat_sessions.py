from __future__ import annotations

import io
import json
import logging
import math
import zipfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import UUID

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException
from sqlalchemy.orm import Session

from bolt.config import settings
from bolt.db.base import SessionLocal
from bolt.db.enums import ChatFileStatusEnum, ChatRoleEnum
from bolt.db.models import ChatFile, ChatMessage, ChatSession, utcnow
from bolt.db.repositories.chat_sessions import ChatSessionsRepository
from bolt.services.file_storage import LocalFileStorage
from bolt.services.response_content import extract_response_content
from bolt.services.workflow_client import MultipartFile, WorkflowClient, WorkflowConfigError

logger = logging.getLogger(__name__)

MIN_RETAINED_MESSAGES = 2
RESET_MESSAGE = "Chat has been reset."
SHEET_PROMPT = "Please specify which sheet you would like to use from the Excel file."

_EXCEL_SUFFIXES = {".xlsx", ".xlsm"}


class ChatSessionBusyError(RuntimeError):
    pass


class ChatFileLimitError(RuntimeError):
    pass


def estimate_tokens(text: str) -> int:
    """Rough token count: four characters per token, rounded up."""
    return math.ceil(len(text or "") / 4)


def _format_size(size: int) -> str:
    if size > 1024 * 1024:
        return f"{size / (1024 * 1024):.2f} MB"
    return f"{size / 1024:.1f} kB"


def _read_sheet_names(content: bytes) -> Optional[list[str]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as exc:
        logger.warning("Could not read workbook sheet names", exc_info=exc)
        return None
    try:
        return list(workbook.sheetnames)
    finally:
        workbook.close()


def serialize_message(message: ChatMessage) -> dict[str, Any]:
    return {
        "id": str(message.id),
        "role": message.role,
        "content": message.content,
        "tokens": message.tokens,
        "timestamp": message.created_at.isoformat() if message.created_at else None,
    }


def serialize_file(chat_file: ChatFile) -> dict[str, Any]:
    return {
        "id": str(chat_file.id),
        "name": chat_file.original_name,
        "type": chat_file.mime_type,
        "size": chat_file.size,
        "status": chat_file.status,
        "isProcessed": chat_file.is_processed,
        "sheetNames": chat_file.sheet_names,
    }


def serialize_session(chat: ChatSession) -> dict[str, Any]:
    return {
        "id": str(chat.id),
        "name": chat.name,
        "totalTokens": chat.total_tokens,
        "isProcessing": chat.is_processing,
        "lastActivity": chat.last_activity_at.isoformat() if chat.last_activity_at else None,
        "createdAt": chat.created_at.isoformat() if chat.created_at else None,
    }


class ChatSessionService:
    def __init__(
        self,
        session: Session | None = None,
        *,
        client: WorkflowClient | None = None,
        storage: LocalFileStorage | None = None,
    ) -> None:
        self.session = session or SessionLocal()
        self.repo = ChatSessionsRepository(self.session)
        self.client = client or WorkflowClient()
        self.storage = storage or LocalFileStorage()

    def history(self, chat: ChatSession) -> dict[str, Any]:
        return {
            **serialize_session(chat),
            "messages": [serialize_message(message) for message in self.repo.list_messages(session_id=chat.id)],
            "files": [serialize_file(chat_file) for chat_file in self.repo.list_files(session_id=chat.id)],
        }

    def append_message(self, chat: ChatSession, *, role: ChatRoleEnum, content: str) -> ChatMessage:
        tokens = estimate_tokens(content)
        message = ChatMessage(
            session_id=chat.id,
            position=self.repo.next_position(session_id=chat.id),
            role=role.value,
            content=content,
            tokens=tokens,
        )
        self.session.add(message)
        chat.total_tokens = (chat.total_tokens or 0) + tokens
        chat.last_activity_at = utcnow()
        self.session.commit()
        self.session.refresh(message)
        return message

    def enforce_token_budget(self, chat: ChatSession, *, threshold: Optional[int] = None) -> int:
        """Drop the oldest messages while over budget, keeping at least two."""
        limit = settings.TOKEN_CLEANUP_THRESHOLD if threshold is None else threshold
        messages = self.repo.list_messages(session_id=chat.id)
        total = sum(message.tokens for message in messages)
        evicted = 0
        while total > limit and len(messages) > MIN_RETAINED_MESSAGES:
            oldest = messages.pop(0)
            total -= oldest.tokens
            self.session.delete(oldest)
            evicted += 1
        self.session.flush()
        chat.total_tokens = self.repo.sum_tokens(session_id=chat.id)
        self.session.commit()
        if evicted:
            logger.info(
                "Evicted chat messages over token budget",
                extra={"session_id": str(chat.id), "evicted": evicted, "total_tokens": chat.total_tokens},
            )
        return evicted

    def upload_file(
        self,
        chat: ChatSession,
        *,
        filename: str,
        content_type: str,
        content: bytes,
    ) -> ChatFile:
        if self.repo.count_files(session_id=chat.id) >= settings.CHAT_MAX_FILES:
            raise ChatFileLimitError(
                f"Maximum number of files ({settings.CHAT_MAX_FILES}) reached. "
                "Please remove some files before uploading more."
            )
        sheet_names = None
        if Path(filename).suffix.lower() in _EXCEL_SUFFIXES:
            sheet_names = _read_sheet_names(content)

        key = self.storage.save(original_name=filename, content=content)
        chat_file = ChatFile(
            session_id=chat.id,
            original_name=filename,
            storage_path=key,
            mime_type=content_type,
            size=len(content),
            status=ChatFileStatusEnum.pending.value,
            is_processed=False,
            sheet_names=sheet_names,
        )
        chat.last_activity_at = utcnow()
        return self.repo.save(chat_file)

    def remove_file(self, chat_file: ChatFile) -> None:
        self.storage.delete(chat_file.storage_path)
        self.repo.delete(chat_file)

    def reset(self, chat: ChatSession) -> list[ChatMessage]:
        for chat_file in self.repo.list_files(session_id=chat.id):
            self.storage.delete(chat_file.storage_path)
        self.repo.clear_conversation(chat=chat)
        message = self.append_message(chat, role=ChatRoleEnum.system, content=RESET_MESSAGE)
        return [message]

    def delete_session(self, chat: ChatSession) -> None:
        """Soft-delete: messages stay, uploaded files are removed."""
        for chat_file in self.repo.list_files(session_id=chat.id):
            self.storage.delete(chat_file.storage_path)
            self.session.delete(chat_file)
        self.repo.deactivate(chat=chat)

    def send_message(
        self,
        chat: ChatSession,
        *,
        chat_input: str,
        file_ids: Optional[list[UUID]] = None,
        model: Optional[str] = None,
    ) -> ChatMessage:
        """
        Forward a user message (and any unprocessed files) to the chat workflow.

        Raises ChatSessionBusyError while another request holds a fresh
        processing flag. The flag is always released before returning.
        """
        webhook_url = settings.N8N_CHAT_WEBHOOK
        if not webhook_url:
            raise WorkflowConfigError("N8N_CHAT_WEBHOOK is not configured")

        stale_before = datetime.now(timezone.utc) - timedelta(seconds=settings.CHAT_PROCESSING_TIMEOUT_SECONDS)
        if not self.repo.try_acquire_processing(session_id=chat.id, stale_before=stale_before):
            raise ChatSessionBusyError("Please wait while the previous request is being processed")

        try:
            self.session.refresh(chat)
            self.append_message(chat, role=ChatRoleEnum.user, content=chat_input)
            files = self.repo.unprocessed_files(session_id=chat.id, file_ids=file_ids)
            history = [
                {"role": message.role, "content": message.content}
                for message in self.repo.list_messages(session_id=chat.id)
            ]
            reply = self._call_workflow(
                webhook_url,
                chat=chat,
                chat_input=chat_input,
                model=model,
                history=history,
                files=files,
            )
            assistant_message = self.append_message(
                chat,
                role=ChatRoleEnum.assistant,
                content=extract_response_content(reply),
            )
            self.repo.mark_files_processed(file_ids=[chat_file.id for chat_file in files])
            self.enforce_token_budget(chat)
            return assistant_message
        except Exception:
            self.session.rollback()
            logger.exception("Chat message failed", extra={"session_id": str(chat.id)})
            raise
        finally:
            self.repo.release_processing(session_id=chat.id)
            self.session.expire(chat)

    def _call_workflow(
        self,
        webhook_url: str,
        *,
        chat: ChatSession,
        chat_input: str,
        model: Optional[str],
        history: list[dict[str, str]],
        files: list[ChatFile],
    ) -> Any:
        if not files:
            return self.client.post_json(
                webhook_url,
                {
                    "action": "sendMessage",
                    "sessionId": str(chat.id),
                    "chatInput": chat_input,
                    "model": model,
                    "history": history,
                },
            )

        metadata = []
        binaries: list[MultipartFile] = []
        for index, chat_file in enumerate(files):
            binary_key = f"data{index}"
            metadata.append(
                {
                    "fileName": chat_file.original_name,
                    "fileSize": _format_size(chat_file.size),
                    "fileType": chat_file.mime_type.split("/")[-1],
                    "mimeType": chat_file.mime_type,
                    "fileExtension": Path(chat_file.original_name).suffix.lstrip("."),
                    "binaryKey": binary_key,
                    "sheetNames": chat_file.sheet_names,
                }
            )
            binaries.append(
                (
                    binary_key,
                    chat_file.original_name,
                    self.storage.read(chat_file.storage_path),
                    chat_file.mime_type,
                )
            )
        fields = {
            "action": "sendMessage",
            "sessionId": str(chat.id),
            "chatInput": chat_input,
            "model": model or "",
            "files": json.dumps(metadata),
            "history": json.dumps(history),
        }
        return self.client.post_multipart(webhook_url, fields=fields, files=binaries)
