from __future__ import annotations

import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from bolt.db.enums import ChatRoleEnum, TemplateVariableTypeEnum

_VARIABLE_NAME_RE = re.compile(r"^[a-zA-Z0-9_]+$")


class AgentConfig(BaseModel):
    name: Optional[str] = None
    webhookUrl: Optional[str] = None
    icon: Optional[str] = None
    description: Optional[str] = None


class ConversationMessage(BaseModel):
    role: ChatRoleEnum
    content: str
    timestamp: Optional[str] = None


class ConversationUpsertRequest(BaseModel):
    conversationId: Optional[str] = None
    title: Optional[str] = None
    messages: Optional[List[ConversationMessage]] = None
    isArchived: Optional[bool] = None
    agent: Optional[AgentConfig] = None


class ConversationRenameRequest(BaseModel):
    title: Optional[str] = None


class ConversationArchiveRequest(BaseModel):
    isArchived: Optional[bool] = None


class AssistantSendRequest(BaseModel):
    conversation_id: Optional[str] = Field(None, alias="conversationId")
    message: Optional[str] = None
    webhook_url: Optional[str] = Field(None, alias="webhookUrl")
    ga4_account_id: Optional[str] = Field(None, alias="ga4AccountId")
    is_google_analytics_agent: bool = Field(False, alias="isGoogleAnalyticsAgent")

    model_config = ConfigDict(populate_by_name=True)


class TemplateVariable(BaseModel):
    name: str
    description: str = ""
    defaultValue: str = ""
    type: TemplateVariableTypeEnum = TemplateVariableTypeEnum.text
    options: List[str] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        if not _VARIABLE_NAME_RE.fullmatch(value):
            raise ValueError("Variable names may only contain letters, numbers and underscores")
        return value


class TemplateCreateRequest(BaseModel):
    title: str
    content: str = Field(..., min_length=1)
    variables: List[TemplateVariable] = Field(default_factory=list)
    isPublic: bool = False

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not 1 <= len(cleaned) <= 100:
            raise ValueError("title must be between 1 and 100 characters")
        return cleaned


class TemplateUpdateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    variables: Optional[List[TemplateVariable]] = None
    isPublic: Optional[bool] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        cleaned = value.strip()
        if not 1 <= len(cleaned) <= 100:
            raise ValueError("title must be between 1 and 100 characters")
        return cleaned

    @model_validator(mode="after")
    def validate_content(self) -> "TemplateUpdateRequest":
        if self.content is not None and not self.content.strip():
            raise ValueError("content cannot be empty")
        return self

    def changed_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self.title is not None:
            fields["title"] = self.title
        if self.content is not None:
            fields["content"] = self.content
        if self.variables is not None:
            fields["variables"] = [variable.model_dump(mode="json") for variable in self.variables]
        if self.isPublic is not None:
            fields["is_public"] = self.isPublic
        return fields
