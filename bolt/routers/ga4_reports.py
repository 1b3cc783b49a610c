from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from bolt.auth.dependencies import AuthContext, get_current_user
from bolt.db.deps import get_session
from bolt.db.enums import JobKindEnum
from bolt.routers.job_routes import delete_job, get_owned_job, list_jobs, poll_job, submit_job
from bolt.schemas.jobs import GA4ReportRequest
from bolt.services.generation_jobs import serialize_job

router = APIRouter(prefix="/ga4-reports", tags=["ga4-reports"])


@router.post("", status_code=status.HTTP_202_ACCEPTED)
def submit_ga4_report(
    payload: GA4ReportRequest,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return submit_job(
        session=session,
        auth=auth,
        kind=JobKindEnum.ga4_report,
        params=payload.model_dump(mode="json"),
    )


@router.get("/status")
def ga4_report_status(
    jobId: Optional[UUID] = None,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return poll_job(session=session, auth=auth, kind=JobKindEnum.ga4_report, job_id=jobId)


@router.get("")
def list_ga4_reports(
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return list_jobs(session=session, auth=auth, kind=JobKindEnum.ga4_report)


@router.get("/{job_id}")
def get_ga4_report(
    job_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    job = get_owned_job(session=session, auth=auth, kind=JobKindEnum.ga4_report, job_id=job_id)
    return serialize_job(job)


@router.delete("/{job_id}")
def delete_ga4_report(
    job_id: UUID,
    auth: AuthContext = Depends(get_current_user),
    session: Session = Depends(get_session),
):
    return delete_job(session=session, auth=auth, kind=JobKindEnum.ga4_report, job_id=job_id)
