from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from bolt.db.enums import JobKindEnum, JobStatusEnum
from bolt.db.models import PLACEHOLDER_CONTENT, GenerationJob
from bolt.db.repositories.base import Repository


class GenerationJobsRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def create(self, *, user_id: UUID, kind: JobKindEnum, params: dict[str, Any]) -> GenerationJob:
        job = GenerationJob(
            user_id=user_id,
            kind=kind.value,
            params=params,
            content=PLACEHOLDER_CONTENT,
            status=JobStatusEnum.processing.value,
        )
        return self.save(job)

    def get(self, job_id: UUID, *, kind: Optional[JobKindEnum] = None) -> Optional[GenerationJob]:
        stmt = select(GenerationJob).where(GenerationJob.id == job_id)
        if kind is not None:
            stmt = stmt.where(GenerationJob.kind == kind.value)
        return self.session.scalars(stmt).first()

    def get_for_user(self, *, job_id: UUID, user_id: UUID, kind: JobKindEnum) -> Optional[GenerationJob]:
        stmt = select(GenerationJob).where(
            GenerationJob.id == job_id,
            GenerationJob.user_id == user_id,
            GenerationJob.kind == kind.value,
        )
        return self.session.scalars(stmt).first()

    def latest_for_user(self, *, user_id: UUID, kind: JobKindEnum) -> Optional[GenerationJob]:
        stmt = (
            select(GenerationJob)
            .where(GenerationJob.user_id == user_id, GenerationJob.kind == kind.value)
            .order_by(GenerationJob.created_at.desc())
            .limit(1)
        )
        return self.session.scalars(stmt).first()

    def list_for_user(self, *, user_id: UUID, kind: JobKindEnum, limit: int = 100) -> list[GenerationJob]:
        stmt = (
            select(GenerationJob)
            .where(GenerationJob.user_id == user_id, GenerationJob.kind == kind.value)
            .order_by(GenerationJob.created_at.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def create_completed(
        self,
        *,
        user_id: UUID,
        kind: JobKindEnum,
        params: dict[str, Any],
        content: Any,
    ) -> GenerationJob:
        now = datetime.now(timezone.utc)
        job = GenerationJob(
            user_id=user_id,
            kind=kind.value,
            params=params,
            content=content,
            status=JobStatusEnum.completed.value,
            completed_at=now,
        )
        return self.save(job)

    def mark_completed(self, job_id: UUID, *, content: Any) -> Optional[GenerationJob]:
        now = datetime.now(timezone.utc)
        stmt = (
            update(GenerationJob)
            .where(GenerationJob.id == job_id)
            .values(
                content=content,
                status=JobStatusEnum.completed.value,
                error=None,
                completed_at=now,
                updated_at=now,
            )
            .returning(GenerationJob)
        )
        job = self.session.execute(stmt).scalar_one_or_none()
        if job:
            self.session.commit()
        return job

    def set_status(
        self,
        job_id: UUID,
        *,
        status: JobStatusEnum,
        error: Optional[str] = None,
    ) -> Optional[GenerationJob]:
        now = datetime.now(timezone.utc)
        values: dict[str, Any] = {"status": status.value, "updated_at": now, "error": error}
        if status == JobStatusEnum.completed:
            values["completed_at"] = now
        stmt = update(GenerationJob).where(GenerationJob.id == job_id).values(**values).returning(GenerationJob)
        job = self.session.execute(stmt).scalar_one_or_none()
        if job:
            self.session.commit()
        return job

    def update_job(
        self,
        *,
        job: GenerationJob,
        params: Optional[dict[str, Any]] = None,
        content: Any = None,
    ) -> GenerationJob:
        if params is not None:
            job.params = {**(job.params or {}), **params}
        if content is not None:
            job.content = content
        job.updated_at = datetime.now(timezone.utc)
        return self.save(job)
