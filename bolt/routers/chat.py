from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from bolt.auth.dependencies import AuthContext, get_current_user
from bolt.db.deps import get_session
from bolt.db.models import ChatSession
from bolt.db.repositories.chat_sessions import ChatSessionsRepository
from bolt.schemas.chat import ChatMessageRequest, ChatResetRequest, ChatSessionCreateRequest
from bolt.services.chat_sessions import (
    SHEET_PROMPT,
    ChatFileLimitError,
    ChatSessionBusyError,
    ChatSessionService,
    serialize_file,
    serialize_message,
    serialize_session,
)
from bolt.services.workflow_client import WorkflowConfigError, WorkflowRequestError, raise_for_workflow_error

router = APIRouter(prefix="/chat", tags=["chat"])
logger = logging.getLogger(__name__)


def _get_chat_or_404(session: Session, auth: AuthContext, session_id: UUID) -> ChatSession:
    chat = ChatSessionsRepository(session).get(session_id=session_id, user_id=auth.user_id)
    if not chat:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chat session not found")
    return chat


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
def create_chat_session(
    payload: ChatSessionCreateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    chat = ChatSessionsRepository(session).create(user_id=auth.user_id, name=payload.name)
    return serialize_session(chat)


@router.get("/sessions")
def list_chat_sessions(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return [serialize_session(chat) for chat in ChatSessionsRepository(session).list_active(user_id=auth.user_id)]


@router.get("/sessions/{session_id}")
def get_chat_session(
    session_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    chat = _get_chat_or_404(session, auth, session_id)
    return ChatSessionService(session).history(chat)


@router.delete("/sessions/{session_id}")
def delete_chat_session(
    session_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    chat = _get_chat_or_404(session, auth, session_id)
    ChatSessionService(session).delete_session(chat)
    return {"message": "Chat session deleted successfully"}


@router.get("/history")
def get_chat_history(
    sessionId: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    chat = _get_chat_or_404(session, auth, sessionId)
    return ChatSessionService(session).history(chat)


@router.post("/upload")
async def upload_chat_file(
    file: UploadFile = File(...),
    sessionId: UUID = Form(...),
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    chat = _get_chat_or_404(session, auth, sessionId)
    content = await file.read()
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty")

    service = ChatSessionService(session)
    try:
        chat_file = service.upload_file(
            chat,
            filename=file.filename or "upload",
            content_type=file.content_type or "application/octet-stream",
            content=content,
        )
    except ChatFileLimitError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    message = "File uploaded successfully"
    if chat_file.sheet_names:
        message = f"{SHEET_PROMPT} Available sheets: {', '.join(chat_file.sheet_names)}"
    return {"files": [serialize_file(chat_file)], "message": message}


@router.delete("/files/{file_id}")
def delete_chat_file(
    file_id: UUID,
    sessionId: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    chat = _get_chat_or_404(session, auth, sessionId)
    chat_file = ChatSessionsRepository(session).get_file(session_id=chat.id, file_id=file_id)
    if not chat_file:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    ChatSessionService(session).remove_file(chat_file)
    return {"message": "File removed successfully"}


@router.post("/message")
def send_chat_message(
    payload: ChatMessageRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    chat = _get_chat_or_404(session, auth, payload.session_id)
    service = ChatSessionService(session)
    try:
        reply = service.send_message(
            chat,
            chat_input=payload.chat_input,
            file_ids=payload.file_ids,
            model=payload.model,
        )
    except ChatSessionBusyError as exc:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=str(exc)) from exc
    except (WorkflowConfigError, WorkflowRequestError) as exc:
        raise_for_workflow_error(exc, context="Failed to process chat message")

    chat = _get_chat_or_404(session, auth, payload.session_id)
    return {"message": serialize_message(reply), "session": serialize_session(chat)}


@router.post("/reset")
def reset_chat(
    payload: ChatResetRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    chat = _get_chat_or_404(session, auth, payload.session_id)
    messages = ChatSessionService(session).reset(chat)
    return {
        "messages": [serialize_message(message) for message in messages],
        "totalTokens": chat.total_tokens,
    }
