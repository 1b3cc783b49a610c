from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from bolt.config import settings
from bolt.db.base import SessionLocal
from bolt.db.enums import JobKindEnum, JobStatusEnum
from bolt.db.models import GenerationJob, ensure_utc
from bolt.db.repositories.generation_jobs import GenerationJobsRepository
from bolt.security import build_callback_url
from bolt.services.callback_content import is_placeholder_or_empty
from bolt.services.workflow_client import WorkflowClient, WorkflowConfigError

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Job failed due to timeout: no result received within {minutes} minutes"

_WEBHOOK_SETTING_BY_KIND = {
    JobKindEnum.ad_copy: "N8N_AD_COPY_WEBHOOK",
    JobKindEnum.content_brief: "N8N_SEO_WEBHOOK",
    JobKindEnum.audience_analysis: "N8N_LINKEDIN_WEBHOOK",
    JobKindEnum.ga4_report: "N8N_GA4_REPORT_WEBHOOK",
}

# Strings the ad copy workflow emits for variations it could not produce.
_INVALID_VARIATION_MARKERS = ("Not generated", "null", "undefined")


def webhook_url_for(kind: JobKindEnum) -> Optional[str]:
    return getattr(settings, _WEBHOOK_SETTING_BY_KIND[kind])


@dataclass
class JobStatusView:
    job_id: UUID
    status: str
    content: Any = None
    message: Optional[str] = None

    def as_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"jobId": str(self.job_id), "status": self.status}
        if self.status == JobStatusEnum.completed.value:
            body["content"] = self.content
        elif self.status == JobStatusEnum.failed.value:
            body["message"] = self.message or "Job failed"
        else:
            body["retryAfterSeconds"] = settings.STATUS_POLL_INTERVAL_SECONDS
        return body


class GenerationJobService:
    """Submit jobs to external workflows and track them until a callback lands."""

    def __init__(
        self,
        session: Session | None = None,
        *,
        client: WorkflowClient | None = None,
    ) -> None:
        self.session = session or SessionLocal()
        self.jobs_repo = GenerationJobsRepository(self.session)
        self.client = client or WorkflowClient()

    def submit(self, *, kind: JobKindEnum, user_id: UUID, params: dict[str, Any]) -> GenerationJob:
        """
        Persist a placeholder record and hand the work to the kind's workflow.

        The placeholder stays behind if the outbound call fails; the poller's
        timeout rule eventually marks it failed.
        """
        webhook_url = webhook_url_for(kind)
        if not webhook_url:
            raise WorkflowConfigError(f"{_WEBHOOK_SETTING_BY_KIND[kind]} is not configured")

        job = self.jobs_repo.create(user_id=user_id, kind=kind, params=params)
        payload = {
            **params,
            "callbackUrl": build_callback_url(kind=kind, job_id=job.id),
            "recordId": str(job.id),
            "userId": str(user_id),
        }
        try:
            self.client.post_json(webhook_url, payload)
        except Exception:
            logger.exception(
                "Workflow submission failed",
                extra={"job_id": str(job.id), "kind": kind.value},
            )
            raise
        logger.info("Workflow job submitted", extra={"job_id": str(job.id), "kind": kind.value})
        return job

    def resolve_for_poll(
        self,
        *,
        kind: JobKindEnum,
        user_id: UUID,
        job_id: Optional[UUID] = None,
    ) -> Optional[GenerationJob]:
        if job_id is not None:
            return self.jobs_repo.get_for_user(job_id=job_id, user_id=user_id, kind=kind)
        # Without an id the newest job wins; older in-flight jobs are not visible here.
        return self.jobs_repo.latest_for_user(user_id=user_id, kind=kind)

    def heal(self, job: GenerationJob, *, now: Optional[datetime] = None) -> GenerationJob:
        """Bring status back in line with content, failing jobs that outlived the timeout."""
        now = now or datetime.now(timezone.utc)
        has_content = not is_placeholder_or_empty(job.content)

        if job.status == JobStatusEnum.completed.value and not has_content:
            logger.info("Reverting completed job without content", extra={"job_id": str(job.id)})
            job = self.jobs_repo.set_status(job.id, status=JobStatusEnum.processing) or job

        if job.status == JobStatusEnum.processing.value:
            timeout = timedelta(seconds=settings.JOB_TIMEOUT_SECONDS)
            if not has_content and ensure_utc(job.created_at) < now - timeout:
                minutes = max(1, settings.JOB_TIMEOUT_SECONDS // 60)
                logger.info("Failing timed out job", extra={"job_id": str(job.id)})
                job = (
                    self.jobs_repo.set_status(
                        job.id,
                        status=JobStatusEnum.failed,
                        error=TIMEOUT_MESSAGE.format(minutes=minutes),
                    )
                    or job
                )
            elif has_content:
                logger.info("Completing job whose content already arrived", extra={"job_id": str(job.id)})
                job = self.jobs_repo.set_status(job.id, status=JobStatusEnum.completed) or job
        return job

    def poll(
        self,
        *,
        kind: JobKindEnum,
        user_id: UUID,
        job_id: Optional[UUID] = None,
    ) -> Optional[JobStatusView]:
        job = self.resolve_for_poll(kind=kind, user_id=user_id, job_id=job_id)
        if job is None:
            return None
        job = self.heal(job)
        return JobStatusView(job_id=job.id, status=job.status, content=job.content, message=job.error)

    def complete_from_callback(self, *, job: GenerationJob, content: Any) -> GenerationJob:
        if job.status == JobStatusEnum.completed.value:
            logger.warning("Overwriting already completed job", extra={"job_id": str(job.id)})
        completed = self.jobs_repo.mark_completed(job.id, content=content)
        logger.info("Workflow callback stored", extra={"job_id": str(job.id), "kind": job.kind})
        return completed or job

    def generate_ad_copy_sync(self, *, user_id: UUID, user_email: str, inputs: dict[str, Any]) -> dict[str, Any]:
        """Run the Dify ad copy workflow in blocking mode and return the usable variations."""
        response = self.client.run_dify_workflow(inputs=inputs, user=user_email)
        outputs = parse_dify_outputs(response)
        job = self.jobs_repo.create_completed(
            user_id=user_id,
            kind=JobKindEnum.ad_copy,
            params=inputs,
            content=outputs,
        )
        logger.info("Ad copy saved", extra={"job_id": str(job.id)})
        return filter_variations(outputs)


class DifyResponseError(RuntimeError):
    pass


def parse_dify_outputs(response: dict[str, Any]) -> dict[str, Any]:
    if not response.get("workflow_run_id"):
        raise DifyResponseError("Failed to start workflow - no workflow ID received")
    data = response.get("data")
    if not isinstance(data, dict):
        raise DifyResponseError("Invalid workflow response format - missing data object")
    if data.get("status") == "failed":
        raise DifyResponseError(data.get("error") or "Workflow execution failed")

    outputs = data.get("outputs") or response.get("outputs")
    if not isinstance(outputs, dict) or not outputs:
        raise DifyResponseError("No answer received from workflow")

    processed: dict[str, Any] = {}
    for key, value in outputs.items():
        if isinstance(value, str) and value.startswith(("{", "[")):
            try:
                processed[key] = json.loads(value)
                continue
            except json.JSONDecodeError:
                logger.warning("Failed to parse workflow output", extra={"output_key": key})
        processed[key] = value
    return processed


def filter_variations(outputs: dict[str, Any]) -> dict[str, str]:
    filtered: dict[str, str] = {}
    for key, value in outputs.items():
        if not isinstance(value, str) or not value.strip():
            continue
        if any(marker in value for marker in _INVALID_VARIATION_MARKERS):
            continue
        filtered[key] = value
    return filtered


def serialize_job(job: GenerationJob) -> dict[str, Any]:
    return {
        "id": str(job.id),
        "kind": job.kind,
        "params": job.params,
        "content": job.content,
        "status": job.status,
        "error": job.error,
        "createdAt": job.created_at.isoformat() if job.created_at else None,
        "updatedAt": job.updated_at.isoformat() if job.updated_at else None,
        "completedAt": job.completed_at.isoformat() if job.completed_at else None,
    }
