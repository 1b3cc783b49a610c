from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from bolt.db.models import PromptTemplate
from bolt.db.repositories.base import Repository


class PromptTemplatesRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def get(self, template_id: UUID) -> Optional[PromptTemplate]:
        return self.session.get(PromptTemplate, template_id)

    def list_visible(self, *, user_id: UUID) -> list[PromptTemplate]:
        stmt = (
            select(PromptTemplate)
            .where(or_(PromptTemplate.user_id == user_id, PromptTemplate.is_public.is_(True)))
            .order_by(PromptTemplate.updated_at.desc())
        )
        return list(self.session.scalars(stmt).all())

    def create(
        self,
        *,
        user_id: UUID,
        title: str,
        content: str,
        variables: list[dict[str, Any]],
        is_public: bool,
    ) -> PromptTemplate:
        template = PromptTemplate(
            user_id=user_id,
            title=title,
            content=content,
            variables=variables,
            is_public=is_public,
        )
        return self.save(template)

    def update(self, *, template: PromptTemplate, fields: dict[str, Any]) -> PromptTemplate:
        for key, value in fields.items():
            setattr(template, key, value)
        return self.save(template)
