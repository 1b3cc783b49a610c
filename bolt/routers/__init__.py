from bolt.routers import ad_copies, analytics, assistant, audience_analyses, auth, callbacks, chat
from bolt.routers import content_briefs, ga4_reports, templates

__all__ = [
    "ad_copies",
    "analytics",
    "assistant",
    "audience_analyses",
    "auth",
    "callbacks",
    "chat",
    "content_briefs",
    "ga4_reports",
    "templates",
]
