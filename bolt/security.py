from __future__ import annotations

import hashlib
import hmac
from urllib.parse import urlencode
from uuid import UUID

from bolt.config import settings
from bolt.db.enums import JobKindEnum


def sign_callback(*, kind: JobKindEnum, job_id: UUID) -> str:
    message = f"{kind.value}:{job_id}"
    return hmac.new(
        settings.CALLBACK_SIGNING_SECRET.encode("utf-8"),
        message.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def verify_callback_token(*, kind: JobKindEnum, job_id: UUID, supplied_token: str | None) -> bool:
    if not supplied_token:
        return False
    expected = sign_callback(kind=kind, job_id=job_id)
    return hmac.compare_digest(expected, supplied_token.strip())


def build_callback_url(*, kind: JobKindEnum, job_id: UUID) -> str:
    query = urlencode({"analysisId": str(job_id), "token": sign_callback(kind=kind, job_id=job_id)})
    return f"{settings.callback_base_url}/callbacks/{kind.value}?{query}"
