import json
from pathlib import Path
from typing import Annotated

from dotenv import load_dotenv
from pydantic import AnyUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

# Load env values for components that read os.environ directly.
_project_root = Path(__file__).resolve().parents[1]
load_dotenv(_project_root / ".env", override=False)


def _coerce_json(value: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        return value


class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: AnyUrl
    DB_POOL_SIZE: int = 10
    DB_POOL_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    BACKEND_CORS_ORIGINS: Annotated[list[str], NoDecode] = ["http://localhost:3000"]

    # Public base URL the workflows use to reach the callback endpoints.
    API_BASE_URL: str
    # Used to absolutize relative assistant webhook targets.
    BACKEND_URL: str | None = None

    GOOGLE_CLIENT_ID: str
    GOOGLE_JWKS_URL: str = "https://www.googleapis.com/oauth2/v3/certs"
    GOOGLE_ISSUERS: Annotated[list[str], NoDecode] = ["accounts.google.com", "https://accounts.google.com"]
    ALLOWED_EMAIL_DOMAINS: Annotated[list[str], NoDecode] = ["vertodigital.com"]

    CALLBACK_SIGNING_SECRET: str

    N8N_AD_COPY_WEBHOOK: str | None = None
    N8N_SEO_WEBHOOK: str | None = None
    N8N_LINKEDIN_WEBHOOK: str | None = None
    N8N_GA4_REPORT_WEBHOOK: str | None = None
    N8N_CHAT_WEBHOOK: str | None = None
    N8N_DEFAULT_ASSISTANT_WEBHOOK: str | None = None
    N8N_BIGQUERY: str | None = None
    N8N_GOOGLE_ANALYTICS_4: str | None = None

    DIFY_API_BASE_URL: str = "https://api.dify.ai/v1"
    DIFY_API_KEY: str | None = None

    WORKFLOW_TIMEOUT_SECONDS: float = 300.0
    ASSISTANT_TIMEOUT_SECONDS: float = 180.0
    GA4_QUERY_TIMEOUT_SECONDS: float = 120.0
    JOB_TIMEOUT_SECONDS: int = 300
    STATUS_POLL_INTERVAL_SECONDS: int = 5

    TOKEN_CLEANUP_THRESHOLD: int = 8000
    CHAT_PROCESSING_TIMEOUT_SECONDS: int = 30
    CHAT_MAX_FILES: int = 10
    CHAT_CLEANUP_INTERVAL_HOURS: int = 0
    CHAT_SESSION_RETENTION_DAYS: int = 30
    UPLOAD_DIR: str = "uploads"

    @field_validator("BACKEND_CORS_ORIGINS", "ALLOWED_EMAIL_DOMAINS", "GOOGLE_ISSUERS", mode="before")
    @classmethod
    def split_csv(cls, value):
        if isinstance(value, str):
            parsed = _coerce_json(value.strip())
            if isinstance(parsed, list):
                return parsed
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("ALLOWED_EMAIL_DOMAINS")
    @classmethod
    def normalize_domains(cls, value: list[str]) -> list[str]:
        return [domain.lstrip("@").lower() for domain in value]

    @property
    def callback_base_url(self) -> str:
        return self.API_BASE_URL.rstrip("/")

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
