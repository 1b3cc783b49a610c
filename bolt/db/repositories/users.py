from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from bolt.db.models import User
from bolt.db.repositories.base import Repository


class UsersRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def get_by_google_id(self, google_id: str) -> Optional[User]:
        stmt = select(User).where(User.google_id == google_id)
        return self.session.scalars(stmt).first()

    def upsert_login(
        self,
        *,
        google_id: str,
        email: str,
        name: Optional[str],
        picture: Optional[str],
    ) -> User:
        now = datetime.now(timezone.utc)
        user = self.get_by_google_id(google_id)
        if user is None:
            user = User(google_id=google_id, email=email, name=name, picture=picture)
        else:
            user.email = email
            user.name = name or user.name
            user.picture = picture or user.picture
        user.last_login_at = now
        return self.save(user)
