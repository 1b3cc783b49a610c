from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ChatSessionCreateRequest(BaseModel):
    name: Optional[str] = None


class ChatMessageRequest(BaseModel):
    session_id: UUID = Field(..., alias="sessionId")
    chat_input: str = Field(..., alias="chatInput", min_length=1)
    file_ids: Optional[List[UUID]] = Field(None, alias="fileIds")
    model: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ChatResetRequest(BaseModel):
    session_id: UUID = Field(..., alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)
