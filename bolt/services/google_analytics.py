from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bolt.config import settings
from bolt.db.models import ensure_utc
from bolt.db.repositories.google_analytics import GoogleAnalyticsCredentialsRepository
from bolt.services.workflow_client import WorkflowClient, WorkflowRequestError

logger = logging.getLogger(__name__)

NO_DATA_OUTPUT = "No data returned from Google Analytics 4"


class AnalyticsQueryError(RuntimeError):
    pass


def normalize_analytics_response(data: Any) -> list[Any]:
    if data is None:
        return [{"output": NO_DATA_OUTPUT}]
    if isinstance(data, str):
        return [{"output": data}]
    if isinstance(data, list):
        return data
    return [data]


def _describe_upstream_error(exc: WorkflowRequestError) -> str:
    if exc.details:
        details = exc.details if isinstance(exc.details, str) else json.dumps(exc.details)
        return f"N8N Error: {details[:200]}"
    if exc.timed_out:
        return "Request to Google Analytics timed out. Please try again with a simpler query."
    return f"Failed to query GA4: {exc.message}"


def query_google_analytics(
    session: Session,
    *,
    user_id: UUID,
    ga4_account_id: Optional[str],
    payload: dict[str, Any],
    client: WorkflowClient | None = None,
    now: Optional[datetime] = None,
) -> list[Any]:
    """
    Forward an assistant question to the GA4 workflow with the user's stored token.

    Failures come back as a single ``output`` item so the caller can show them
    like any other reply.
    """
    try:
        account_id = (ga4_account_id or "").strip()
        if not account_id:
            raise AnalyticsQueryError("Google Analytics 4 Account ID is required")

        credential = GoogleAnalyticsCredentialsRepository(session).get_for_user(user_id)
        if credential is None:
            raise AnalyticsQueryError("Not authenticated with Google Analytics")
        now = now or datetime.now(timezone.utc)
        if now >= ensure_utc(credential.expires_at):
            raise AnalyticsQueryError("Google Analytics token expired")

        if not settings.N8N_GOOGLE_ANALYTICS_4:
            raise AnalyticsQueryError("N8N_GOOGLE_ANALYTICS_4 is not configured")

        ga_client = client or WorkflowClient(timeout_seconds=settings.GA4_QUERY_TIMEOUT_SECONDS)
        try:
            data = ga_client.post_json(
                settings.N8N_GOOGLE_ANALYTICS_4,
                {
                    **payload,
                    "accessToken": credential.access_token,
                    "userId": str(user_id),
                    "ga4AccountId": account_id,
                },
            )
        except WorkflowRequestError as exc:
            logger.exception("GA4 workflow request failed", extra={"user_id": str(user_id)})
            raise AnalyticsQueryError(_describe_upstream_error(exc)) from exc
        return normalize_analytics_response(data)
    except AnalyticsQueryError as exc:
        logger.warning("GA4 query failed", extra={"user_id": str(user_id), "error": str(exc)})
        return [{"output": f"Error querying Google Analytics: {exc}"}]
