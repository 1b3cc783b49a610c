import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import ORJSONResponse
from sqlalchemy.orm import Session

from bolt.db.deps import get_session
from bolt.db.enums import JobKindEnum
from bolt.db.repositories.generation_jobs import GenerationJobsRepository
from bolt.security import verify_callback_token
from bolt.services.callback_content import (
    decode_body,
    is_placeholder_or_empty,
    normalize_callback_content,
    resolve_job_id,
)
from bolt.services.generation_jobs import GenerationJobService

router = APIRouter(prefix="/callbacks", tags=["callbacks"])
logger = logging.getLogger(__name__)

CALLBACK_TOKEN_HEADER = "X-Callback-Token"


def _parse_kind(raw: str) -> JobKindEnum:
    try:
        return JobKindEnum(raw.replace("-", "_"))
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown callback kind") from exc


@router.post("/{kind}")
@router.post("/{kind}/{job_id}")
async def receive_callback(
    kind: str,
    request: Request,
    job_id: Optional[str] = None,
    session: Session = Depends(get_session),
):
    job_kind = _parse_kind(kind)
    raw_body = await request.body()
    body_text = raw_body.decode("utf-8", errors="replace")

    resolved_id = resolve_job_id(
        query_params=dict(request.query_params),
        path_id=job_id,
        body_text=body_text,
    )
    if resolved_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing job id")

    job = GenerationJobsRepository(session).get(resolved_id, kind=job_kind)
    if job is None:
        logger.warning("Callback for unknown job", extra={"job_id": str(resolved_id), "kind": job_kind.value})
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job not found")

    token = request.query_params.get("token") or request.headers.get(CALLBACK_TOKEN_HEADER)
    if not verify_callback_token(kind=job_kind, job_id=job.id, supplied_token=token):
        logger.warning("Rejected callback with invalid token", extra={"job_id": str(job.id)})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid callback token")

    payload = decode_body(raw_body, request.headers.get("content-type"))
    content = None if is_placeholder_or_empty(payload) else normalize_callback_content(job_kind, payload)
    if is_placeholder_or_empty(content):
        logger.warning("Callback carried no usable content", extra={"job_id": str(job.id)})
        return ORJSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid content received"},
        )

    GenerationJobService(session).complete_from_callback(job=job, content=content)
    return {"success": True, "jobId": str(job.id)}
