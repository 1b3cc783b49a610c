from bolt.db.repositories.assistant_conversations import AssistantConversationsRepository
from bolt.db.repositories.chat_sessions import ChatSessionsRepository
from bolt.db.repositories.generation_jobs import GenerationJobsRepository
from bolt.db.repositories.google_analytics import GoogleAnalyticsCredentialsRepository
from bolt.db.repositories.templates import PromptTemplatesRepository
from bolt.db.repositories.users import UsersRepository
