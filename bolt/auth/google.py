from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx
from fastapi import HTTPException, status
from jose import jwt
from jose.exceptions import JWTError

from bolt.config import settings


logger = logging.getLogger("auth.google")

_KEYS_TTL_SECONDS = 300


class GoogleKeySet:
    """Google's published signing keys, refreshed every few minutes."""

    def __init__(self, ttl_seconds: int = _KEYS_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._keys: list[dict[str, Any]] = []
        self._fetched_at = 0.0

    def _is_fresh(self) -> bool:
        return bool(self._keys) and time.time() - self._fetched_at < self.ttl_seconds

    def refresh(self) -> None:
        try:
            response = httpx.get(settings.GOOGLE_JWKS_URL, timeout=10)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.exception("Google JWKS fetch failed", extra={"jwks_url": settings.GOOGLE_JWKS_URL})
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Unable to fetch Google signing keys",
            ) from exc
        self._keys = list(response.json().get("keys") or [])
        self._fetched_at = time.time()

    def find(self, kid: str) -> Optional[dict[str, Any]]:
        if not self._is_fresh():
            self.refresh()
        match = next((key for key in self._keys if key.get("kid") == kid), None)
        if match is None:
            # Google rotates keys; an unknown kid forces one refetch.
            self.refresh()
            match = next((key for key in self._keys if key.get("kid") == kid), None)
        return match


_key_set = GoogleKeySet()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def verify_google_id_token(token: str) -> dict[str, Any]:
    """Verify a Google ID token and return its claims."""
    try:
        kid = jwt.get_unverified_header(token).get("kid")
    except JWTError as exc:
        logger.warning("Unreadable token header", exc_info=exc)
        raise _unauthorized("Invalid token") from exc
    if not kid:
        raise _unauthorized("Missing kid in token")

    signing_key = _key_set.find(kid)
    if signing_key is None:
        logger.warning("Google signing key not found", extra={"kid": kid})
        raise _unauthorized("Signing key not found")

    try:
        claims = jwt.decode(
            token,
            signing_key,
            algorithms=[signing_key.get("alg", "RS256")],
            audience=settings.GOOGLE_CLIENT_ID,
            options={"verify_iss": False, "verify_at_hash": False},
        )
    except JWTError as exc:
        logger.warning("Google token rejected", exc_info=exc)
        raise _unauthorized("Invalid token") from exc

    if claims.get("iss") not in settings.GOOGLE_ISSUERS:
        raise _unauthorized("Invalid token issuer")
    logger.debug("Verified Google token", extra={"kid": kid, "sub": claims.get("sub")})
    return claims


def is_allowed_email(email: str | None) -> bool:
    if not email or "@" not in email:
        return False
    domain = email.rsplit("@", 1)[1].lower()
    return domain in settings.ALLOWED_EMAIL_DOMAINS
