from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bolt.auth.dependencies import AuthContext, get_current_user
from bolt.db.deps import get_session
from bolt.db.enums import JobKindEnum
from bolt.routers.job_routes import delete_job, get_owned_job, list_jobs, poll_job, submit_job
from bolt.schemas.jobs import AudienceAnalysisRequest
from bolt.services.generation_jobs import serialize_job

router = APIRouter(prefix="/audience-analyses", tags=["audience-analyses"])


@router.post("", status_code=status.HTTP_202_ACCEPTED)
def submit_audience_analysis(
    payload: AudienceAnalysisRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return submit_job(
        session=session,
        auth=auth,
        kind=JobKindEnum.audience_analysis,
        params=payload.model_dump(mode="json"),
    )


@router.get("/status")
def audience_analysis_status(
    jobId: Optional[UUID] = None,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return poll_job(session=session, auth=auth, kind=JobKindEnum.audience_analysis, job_id=jobId)


@router.get("")
def list_audience_analyses(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return list_jobs(session=session, auth=auth, kind=JobKindEnum.audience_analysis)


@router.get("/{job_id}")
def get_audience_analysis(
    job_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    job = get_owned_job(session=session, auth=auth, kind=JobKindEnum.audience_analysis, job_id=job_id)
    return serialize_job(job)


@router.delete("/{job_id}")
def delete_audience_analysis(
    job_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return delete_job(session=session, auth=auth, kind=JobKindEnum.audience_analysis, job_id=job_id)
