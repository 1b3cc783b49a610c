from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bolt.auth.dependencies import AuthContext, get_current_user
from bolt.db.deps import get_session
from bolt.db.enums import JobKindEnum
from bolt.routers.job_routes import delete_job, get_owned_job, list_jobs, poll_job, submit_job
from bolt.schemas.jobs import ContentBriefRequest
from bolt.services.generation_jobs import serialize_job

router = APIRouter(prefix="/content-briefs", tags=["content-briefs"])


@router.post("", status_code=status.HTTP_202_ACCEPTED)
def submit_content_brief(
    payload: ContentBriefRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return submit_job(
        session=session,
        auth=auth,
        kind=JobKindEnum.content_brief,
        params=payload.model_dump(mode="json"),
    )


@router.get("/status")
def content_brief_status(
    jobId: Optional[UUID] = None,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return poll_job(session=session, auth=auth, kind=JobKindEnum.content_brief, job_id=jobId)


@router.get("")
def list_content_briefs(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return list_jobs(session=session, auth=auth, kind=JobKindEnum.content_brief)


@router.get("/{job_id}")
def get_content_brief(
    job_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    job = get_owned_job(session=session, auth=auth, kind=JobKindEnum.content_brief, job_id=job_id)
    return serialize_job(job)


@router.delete("/{job_id}")
def delete_content_brief(
    job_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return delete_job(session=session, auth=auth, kind=JobKindEnum.content_brief, job_id=job_id)
