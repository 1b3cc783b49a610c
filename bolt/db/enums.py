from enum import Enum


class JobKindEnum(str, Enum):
    ad_copy = "ad_copy"
    content_brief = "content_brief"
    audience_analysis = "audience_analysis"
    ga4_report = "ga4_report"


class JobStatusEnum(str, Enum):
    processing = "processing"
    completed = "completed"
    failed = "failed"


class ChatRoleEnum(str, Enum):
    user = "user"
    assistant = "assistant"
    system = "system"


class ChatFileStatusEnum(str, Enum):
    pending = "pending"
    processing = "processing"
    processed = "processed"
    error = "error"


class TemplateVariableTypeEnum(str, Enum):
    text = "text"
    multiChoice = "multiChoice"
    date = "date"
    dateRange = "dateRange"
    select = "select"


class ReportFormatEnum(str, Enum):
    summary = "summary"
    detailed = "detailed"
    highlights = "highlights"
