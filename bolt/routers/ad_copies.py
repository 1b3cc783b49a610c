from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from bolt.auth.dependencies import AuthContext, get_current_user
from bolt.db.deps import get_session
from bolt.db.enums import JobKindEnum
from bolt.db.repositories.generation_jobs import GenerationJobsRepository
from bolt.routers.job_routes import delete_job, get_owned_job, list_jobs, poll_job, submit_job
from bolt.schemas.jobs import AdCopySubmitRequest, AdCopyUpdateRequest
from bolt.services.ad_copy_parser import parse_variations
from bolt.services.generation_jobs import (
    DifyResponseError,
    GenerationJobService,
    filter_variations,
    serialize_job,
)
from bolt.services.workflow_client import WorkflowConfigError, WorkflowRequestError

router = APIRouter(prefix="/ad-copies", tags=["ad-copies"])
logger = logging.getLogger(__name__)

_DIFY_STATUS_DETAILS = {
    status.HTTP_404_NOT_FOUND: "Ad copy workflow not found",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized access to Dify API",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Dify API internal error",
}


@router.post("", status_code=status.HTTP_202_ACCEPTED)
def submit_ad_copy(
    payload: AdCopySubmitRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return submit_job(session=session, auth=auth, kind=JobKindEnum.ad_copy, params=payload.inputs.as_params())


@router.get("/status")
def ad_copy_status(
    jobId: Optional[UUID] = None,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return poll_job(session=session, auth=auth, kind=JobKindEnum.ad_copy, job_id=jobId)


@router.post("/generate")
def generate_ad_copy(
    payload: AdCopySubmitRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    service = GenerationJobService(session)
    try:
        variations = service.generate_ad_copy_sync(
            user_id=auth.user_id,
            user_email=auth.email,
            inputs=payload.inputs.as_params(),
        )
    except WorkflowConfigError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    except WorkflowRequestError as exc:
        logger.exception("Dify ad copy workflow failed", extra={"user_id": str(auth.user_id)})
        if exc.timed_out:
            raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail="Request timeout") from exc
        if exc.status_code in _DIFY_STATUS_DETAILS:
            raise HTTPException(status_code=exc.status_code, detail=_DIFY_STATUS_DETAILS[exc.status_code]) from exc
        raise HTTPException(
            status_code=exc.status_code or status.HTTP_502_BAD_GATEWAY,
            detail="Failed to generate ad copy",
        ) from exc
    except DifyResponseError as exc:
        logger.warning("Dify returned an unusable response", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc)) from exc

    if not variations:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="No valid content was generated",
        )
    return variations


@router.get("")
def list_ad_copies(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return list_jobs(session=session, auth=auth, kind=JobKindEnum.ad_copy)


@router.get("/{job_id}")
def get_ad_copy(
    job_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return serialize_job(get_owned_job(session=session, auth=auth, kind=JobKindEnum.ad_copy, job_id=job_id))


@router.get("/{job_id}/sections")
def get_ad_copy_sections(
    job_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    job = get_owned_job(session=session, auth=auth, kind=JobKindEnum.ad_copy, job_id=job_id)
    content = job.content if isinstance(job.content, dict) else {}
    return {"jobId": str(job.id), "variations": parse_variations(filter_variations(content))}


@router.put("/{job_id}")
def update_ad_copy(
    job_id: UUID,
    payload: AdCopyUpdateRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    job = get_owned_job(session=session, auth=auth, kind=JobKindEnum.ad_copy, job_id=job_id)
    job = GenerationJobsRepository(session).update_job(job=job, params=payload.params, content=payload.content)
    return serialize_job(job)


@router.delete("/{job_id}")
def delete_ad_copy(
    job_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return delete_job(session=session, auth=auth, kind=JobKindEnum.ad_copy, job_id=job_id)
