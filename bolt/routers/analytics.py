from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from bolt.auth.dependencies import AuthContext, get_current_user
from bolt.db.deps import get_session
from bolt.db.models import ensure_utc
from bolt.db.repositories.google_analytics import GoogleAnalyticsCredentialsRepository
from bolt.schemas.jobs import GoogleAnalyticsCredentialsRequest

router = APIRouter(prefix="/analytics/google-analytics", tags=["analytics"])

DEFAULT_TOKEN_LIFETIME_SECONDS = 3600


def _resolve_expiry(payload: GoogleAnalyticsCredentialsRequest) -> datetime:
    if payload.expiresAt:
        try:
            return ensure_utc(datetime.fromisoformat(payload.expiresAt.replace("Z", "+00:00")))
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="expiresAt must be an ISO-8601 timestamp",
            ) from exc
    lifetime = payload.expiresIn or DEFAULT_TOKEN_LIFETIME_SECONDS
    return datetime.now(timezone.utc) + timedelta(seconds=lifetime)


@router.get("/credentials")
def get_credentials_status(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    credential = GoogleAnalyticsCredentialsRepository(session).get_for_user(auth.user_id)
    if credential is None:
        return {"connected": False, "expiresAt": None, "expired": False}
    expires_at = ensure_utc(credential.expires_at)
    return {
        "connected": True,
        "expiresAt": expires_at.isoformat(),
        "expired": datetime.now(timezone.utc) >= expires_at,
    }


@router.put("/credentials")
def store_credentials(
    payload: GoogleAnalyticsCredentialsRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    credential = GoogleAnalyticsCredentialsRepository(session).upsert(
        user_id=auth.user_id,
        access_token=payload.accessToken,
        refresh_token=payload.refreshToken,
        expires_at=_resolve_expiry(payload),
        scope=payload.scope,
        token_type=payload.tokenType,
    )
    return {
        "success": True,
        "connected": True,
        "expiresAt": ensure_utc(credential.expires_at).isoformat(),
    }
