from dataclasses import dataclass
import logging
from typing import Optional
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from bolt.auth.google import is_allowed_email, verify_google_id_token
from bolt.config import settings
from bolt.db.deps import get_session
from bolt.db.repositories.users import UsersRepository


bearer_scheme = HTTPBearer(auto_error=False)
logger = logging.getLogger("auth.deps")


@dataclass
class AuthContext:
    user_id: UUID
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> AuthContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")

    claims = verify_google_id_token(credentials.credentials)
    google_id = claims.get("sub")
    email = claims.get("email")
    if not google_id or not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token claims")
    if claims.get("email_verified") is False:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Email address is not verified")
    if not is_allowed_email(email):
        logger.warning("Rejected login from disallowed domain", extra={"email": email})
        allowed = ", ".join(f"@{domain}" for domain in settings.ALLOWED_EMAIL_DOMAINS)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Only {allowed} emails are allowed",
        )

    user = UsersRepository(session).upsert_login(
        google_id=google_id,
        email=email,
        name=claims.get("name"),
        picture=claims.get("picture"),
    )
    logger.debug("AuthContext built", extra={"sub": google_id, "user_id": str(user.id)})
    return AuthContext(user_id=user.id, email=user.email, name=user.name, picture=user.picture)


def get_optional_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> Optional[AuthContext]:
    if credentials is None or not credentials.credentials:
        return None
    try:
        return get_current_user(credentials=credentials, session=session)
    except HTTPException as exc:
        if exc.status_code != status.HTTP_401_UNAUTHORIZED:
            raise
        return None
