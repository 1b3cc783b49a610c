"""Route helpers shared by the workflow-backed job routers."""
from __future__ import annotations

from typing import Any, Optional
from uuid import UUID

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from bolt.auth.dependencies import AuthContext
from bolt.db.enums import JobKindEnum
from bolt.db.models import GenerationJob
from bolt.db.repositories.generation_jobs import GenerationJobsRepository
from bolt.services.generation_jobs import GenerationJobService, serialize_job
from bolt.services.workflow_client import WorkflowConfigError, WorkflowRequestError, raise_for_workflow_error

JOB_LABELS = {
    JobKindEnum.ad_copy: "Ad copy",
    JobKindEnum.content_brief: "Content brief",
    JobKindEnum.audience_analysis: "Audience analysis",
    JobKindEnum.ga4_report: "GA4 report",
}


def submit_job(
    *,
    session: Session,
    auth: AuthContext,
    kind: JobKindEnum,
    params: dict[str, Any],
) -> dict[str, Any]:
    label = JOB_LABELS[kind]
    service = GenerationJobService(session)
    try:
        job = service.submit(kind=kind, user_id=auth.user_id, params=params)
    except (WorkflowConfigError, WorkflowRequestError) as exc:
        raise_for_workflow_error(exc, context=f"Failed to start {label.lower()} generation")
    return {
        "success": True,
        "message": f"{label} generation started",
        "jobId": str(job.id),
    }


def poll_job(
    *,
    session: Session,
    auth: AuthContext,
    kind: JobKindEnum,
    job_id: Optional[UUID],
) -> dict[str, Any]:
    view = GenerationJobService(session).poll(kind=kind, user_id=auth.user_id, job_id=job_id)
    if view is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No {JOB_LABELS[kind].lower()} found")
    return view.as_response()


def get_owned_job(*, session: Session, auth: AuthContext, kind: JobKindEnum, job_id: UUID) -> GenerationJob:
    job = GenerationJobsRepository(session).get_for_user(job_id=job_id, user_id=auth.user_id, kind=kind)
    if not job:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{JOB_LABELS[kind]} not found")
    return job


def list_jobs(*, session: Session, auth: AuthContext, kind: JobKindEnum) -> list[dict[str, Any]]:
    jobs = GenerationJobsRepository(session).list_for_user(user_id=auth.user_id, kind=kind)
    return [serialize_job(job) for job in jobs]


def delete_job(*, session: Session, auth: AuthContext, kind: JobKindEnum, job_id: UUID) -> dict[str, str]:
    job = get_owned_job(session=session, auth=auth, kind=kind, job_id=job_id)
    GenerationJobsRepository(session).delete(job)
    return {"message": f"{JOB_LABELS[kind]} deleted successfully"}
