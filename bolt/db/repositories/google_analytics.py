from __future__ import annotations

from datetime import datetime
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from bolt.db.models import GoogleAnalyticsCredential
from bolt.db.repositories.base import Repository


class GoogleAnalyticsCredentialsRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def get_for_user(self, user_id: UUID) -> Optional[GoogleAnalyticsCredential]:
        stmt = select(GoogleAnalyticsCredential).where(GoogleAnalyticsCredential.user_id == user_id)
        return self.session.scalars(stmt).first()

    def upsert(
        self,
        *,
        user_id: UUID,
        access_token: str,
        refresh_token: Optional[str],
        expires_at: datetime,
        scope: Optional[str],
        token_type: str = "Bearer",
    ) -> GoogleAnalyticsCredential:
        credential = self.get_for_user(user_id)
        if credential is None:
            credential = GoogleAnalyticsCredential(user_id=user_id)
        credential.access_token = access_token
        credential.refresh_token = refresh_token or credential.refresh_token
        credential.expires_at = expires_at
        credential.scope = scope
        credential.token_type = token_type
        return self.save(credential)
