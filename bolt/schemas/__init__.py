from bolt.schemas.assistant import (
    AgentConfig,
    AssistantSendRequest,
    ConversationArchiveRequest,
    ConversationRenameRequest,
    ConversationUpsertRequest,
    TemplateCreateRequest,
    TemplateUpdateRequest,
    TemplateVariable,
)
from bolt.schemas.chat import ChatMessageRequest, ChatResetRequest, ChatSessionCreateRequest
from bolt.schemas.jobs import (
    AdCopyInputs,
    AdCopySubmitRequest,
    AdCopyUpdateRequest,
    AudienceAnalysisRequest,
    ContentBriefRequest,
    GA4ReportRequest,
    GoogleAnalyticsCredentialsRequest,
)
