from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest

from bolt.config import settings
from bolt.db.enums import JobKindEnum, JobStatusEnum
from bolt.db.models import PLACEHOLDER_CONTENT, GenerationJob
from bolt.db.repositories.generation_jobs import GenerationJobsRepository
from bolt.security import sign_callback
from bolt.services.generation_jobs import GenerationJobService
from bolt.services.workflow_client import WorkflowRequestError

AD_COPY_INPUTS = {
    "campaign_name": "Spring launch",
    "input_channels": "Google, Linkedin",
    "landing_page_content": "Our product does things.",
    "landing_page_url": "https://example.com/landing",
}


@pytest.fixture()
def workflow_urls(monkeypatch):
    monkeypatch.setattr(settings, "N8N_AD_COPY_WEBHOOK", "https://n8n.test/ad-copy")
    monkeypatch.setattr(settings, "N8N_SEO_WEBHOOK", "https://n8n.test/seo")
    monkeypatch.setattr(settings, "N8N_LINKEDIN_WEBHOOK", "https://n8n.test/linkedin")
    monkeypatch.setattr(settings, "N8N_GA4_REPORT_WEBHOOK", "https://n8n.test/ga4-report")


def _callback_params(callback_url: str) -> dict[str, str]:
    query = parse_qs(urlparse(callback_url).query)
    return {key: values[0] for key, values in query.items()}


def _make_job(db_session, auth_context, *, kind=JobKindEnum.ad_copy, age=timedelta(0), content=PLACEHOLDER_CONTENT,
              status=JobStatusEnum.processing):
    job = GenerationJob(
        user_id=auth_context.user_id,
        kind=kind.value,
        params={},
        content=content,
        status=status.value,
        created_at=datetime.now(timezone.utc) - age,
    )
    db_session.add(job)
    db_session.commit()
    db_session.refresh(job)
    return job


def test_ad_copy_submit_callback_poll_flow(api_client, db_session, fake_workflow, workflow_urls):
    submit = api_client.post("/ad-copies", json={"inputs": AD_COPY_INPUTS})
    assert submit.status_code == 202
    body = submit.json()
    assert body["success"] is True
    job_id = body["jobId"]

    assert len(fake_workflow.calls) == 1
    call = fake_workflow.calls[0]
    assert call["url"] == "https://n8n.test/ad-copy"
    assert call["payload"]["recordId"] == job_id
    assert call["payload"]["campaign_name"] == "Spring launch"
    callback_url = call["payload"]["callbackUrl"]
    assert callback_url.startswith("https://api.bolt.test/callbacks/ad_copy?")

    pending = api_client.get("/ad-copies/status", params={"jobId": job_id})
    assert pending.status_code == 200
    assert pending.json() == {
        "jobId": job_id,
        "status": "processing",
        "retryAfterSeconds": settings.STATUS_POLL_INTERVAL_SECONDS,
    }

    params = _callback_params(callback_url)
    variations = {"G / Search 2": "<ad_copy>| Headline | Text |\n|---|---|\n| H1 | Buy now |</ad_copy>"}
    callback = api_client.post("/callbacks/ad_copy", params=params, json=variations)
    assert callback.status_code == 200
    assert callback.json() == {"success": True, "jobId": job_id}

    done = api_client.get("/ad-copies/status", params={"jobId": job_id})
    assert done.json()["status"] == "completed"
    assert done.json()["content"] == variations

    sections = api_client.get(f"/ad-copies/{job_id}/sections")
    assert sections.status_code == 200
    [variation] = sections.json()["variations"]
    assert variation["title"] == "Google Search Copies"
    assert variation["adCopy"]["rows"] == [["H1", "Buy now"]]


def test_submit_validation_rejects_unknown_channel(api_client, fake_workflow, workflow_urls):
    inputs = {**AD_COPY_INPUTS, "input_channels": "Google, MySpace"}
    resp = api_client.post("/ad-copies", json={"inputs": inputs})
    assert resp.status_code == 422
    assert fake_workflow.calls == []


def test_submit_without_webhook_configured_creates_nothing(api_client, db_session, fake_workflow, monkeypatch):
    monkeypatch.setattr(settings, "N8N_SEO_WEBHOOK", None)
    resp = api_client.post("/content-briefs", json={"keyword": "crm software"})
    assert resp.status_code == 500
    assert "not configured" in resp.json()["detail"]
    assert db_session.query(GenerationJob).count() == 0


def test_failed_submission_keeps_placeholder(api_client, db_session, fake_workflow, workflow_urls):
    fake_workflow.error = WorkflowRequestError("upstream down", status_code=503)
    resp = api_client.post("/content-briefs", json={"keyword": "crm software"})
    assert resp.status_code == 503

    [job] = db_session.query(GenerationJob).all()
    assert job.status == "processing"
    assert job.content == PLACEHOLDER_CONTENT


def test_poll_fails_job_after_timeout(api_client, db_session, auth_context):
    job = _make_job(db_session, auth_context, age=timedelta(minutes=6))

    resp = api_client.get("/ad-copies/status", params={"jobId": str(job.id)})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "failed"
    assert "timeout" in body["message"]
    assert "retryAfterSeconds" not in body

    db_session.refresh(job)
    assert job.status == "failed"


def test_poll_without_job_id_returns_latest(api_client, db_session, auth_context):
    _make_job(db_session, auth_context, age=timedelta(minutes=2), content="old", status=JobStatusEnum.completed)
    newest = _make_job(db_session, auth_context)

    resp = api_client.get("/ad-copies/status")
    assert resp.json()["jobId"] == str(newest.id)


def test_poll_hides_jobs_of_other_users(api_client, db_session, other_user):
    job = _make_job(db_session, other_user)
    resp = api_client.get("/ad-copies/status", params={"jobId": str(job.id)})
    assert resp.status_code == 404


def test_heal_reverts_completed_job_without_content(db_session, auth_context):
    job = _make_job(db_session, auth_context, content=PLACEHOLDER_CONTENT, status=JobStatusEnum.completed)
    healed = GenerationJobService(db_session).heal(job)
    assert healed.status == "processing"


def test_heal_completes_processing_job_with_content(db_session, auth_context):
    job = _make_job(db_session, auth_context, content="<div>Real brief</div>", age=timedelta(minutes=10))
    healed = GenerationJobService(db_session).heal(job)
    assert healed.status == "completed"
    assert healed.completed_at is not None


def test_ga4_placeholder_callback_is_rejected(api_client, db_session, auth_context):
    job = _make_job(db_session, auth_context, kind=JobKindEnum.ga4_report)
    token = sign_callback(kind=JobKindEnum.ga4_report, job_id=job.id)

    resp = api_client.post(
        "/callbacks/ga4_report",
        params={"analysisId": str(job.id), "token": token},
        content=PLACEHOLDER_CONTENT,
        headers={"Content-Type": "text/plain"},
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid content received"}

    db_session.refresh(job)
    assert job.status == "processing"
    assert job.content == PLACEHOLDER_CONTENT


@pytest.mark.parametrize("kind", list(JobKindEnum))
def test_json_wrapped_placeholder_callback_is_rejected(api_client, db_session, auth_context, kind):
    job = _make_job(db_session, auth_context, kind=kind)
    token = sign_callback(kind=kind, job_id=job.id)

    resp = api_client.post(
        f"/callbacks/{kind.value}",
        params={"analysisId": str(job.id), "token": token},
        json={"content": PLACEHOLDER_CONTENT},
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid content received"}

    db_session.refresh(job)
    assert job.status == "processing"
    assert job.content == PLACEHOLDER_CONTENT


def test_callback_with_bad_token_is_unauthorized(api_client, db_session, auth_context):
    job = _make_job(db_session, auth_context, kind=JobKindEnum.content_brief)
    resp = api_client.post(
        "/callbacks/content_brief",
        params={"analysisId": str(job.id), "token": "forged"},
        content="<h2>Brief</h2><p>Body</p>",
        headers={"Content-Type": "text/html"},
    )
    assert resp.status_code == 401


def test_callback_for_unknown_job_or_wrong_kind(api_client, db_session, auth_context):
    unknown = uuid4()
    resp = api_client.post(
        "/callbacks/content_brief",
        params={"analysisId": str(unknown), "token": sign_callback(kind=JobKindEnum.content_brief, job_id=unknown)},
        content="text",
    )
    assert resp.status_code == 404

    job = _make_job(db_session, auth_context, kind=JobKindEnum.ga4_report)
    resp = api_client.post(f"/callbacks/content_brief/{job.id}", content="text")
    assert resp.status_code == 404


def test_callback_without_any_id(api_client):
    resp = api_client.post("/callbacks/content_brief", content="<p>no id here</p>")
    assert resp.status_code == 400


def test_audience_callback_resolves_id_from_html(api_client, db_session, auth_context):
    job = _make_job(db_session, auth_context, kind=JobKindEnum.audience_analysis)
    token = sign_callback(kind=JobKindEnum.audience_analysis, job_id=job.id)
    html = (
        f'<div data-analysis-id="{job.id}">'
        "<h2>Target Audience</h2><p>CFOs</p>"
        "<h2>Pain Points</h2><ul><li>Manual reporting</li></ul>"
        "</div>"
    )

    resp = api_client.post(
        "/callbacks/audience-analysis",
        content=html,
        headers={"Content-Type": "text/html", "X-Callback-Token": token},
    )
    assert resp.status_code == 200

    db_session.refresh(job)
    assert job.status == "completed"
    assert job.content["targetAudience"] == "<p>CFOs</p>"
    assert "Manual reporting" in job.content["painPoints"]


def test_repeat_callback_overwrites_content(api_client, db_session, auth_context):
    job = _make_job(db_session, auth_context, kind=JobKindEnum.content_brief)
    token = sign_callback(kind=JobKindEnum.content_brief, job_id=job.id)
    for body in ("<p>first</p>", "<p>second</p>"):
        resp = api_client.post(
            f"/callbacks/content_brief/{job.id}",
            params={"token": token},
            content=body,
            headers={"Content-Type": "text/html"},
        )
        assert resp.status_code == 200

    db_session.refresh(job)
    assert job.content == '<div class="content-brief-content"><p>second</p></div>'


def test_saved_jobs_crud(api_client, db_session, auth_context):
    job = _make_job(db_session, auth_context, content={"G / Search 2": "copy"}, status=JobStatusEnum.completed)

    listed = api_client.get("/ad-copies")
    assert [item["id"] for item in listed.json()] == [str(job.id)]

    updated = api_client.put(f"/ad-copies/{job.id}", json={"params": {"campaign_name": "Renamed"}})
    assert updated.status_code == 200
    assert updated.json()["params"]["campaign_name"] == "Renamed"

    deleted = api_client.delete(f"/ad-copies/{job.id}")
    assert deleted.json() == {"message": "Ad copy deleted successfully"}
    assert api_client.get(f"/ad-copies/{job.id}").status_code == 404


def test_generate_ad_copy_with_dify(api_client, db_session, fake_workflow, monkeypatch):
    monkeypatch.setattr(settings, "DIFY_API_KEY", "dify-key")
    fake_workflow.response = {
        "workflow_run_id": "run-1",
        "data": {
            "status": "succeeded",
            "outputs": {
                "G / Search 2": "<ad_copy>Buy now</ad_copy>",
                "Email 1": "Not generated",
                "Reddit All 2": "",
            },
        },
    }

    resp = api_client.post("/ad-copies/generate", json={"inputs": AD_COPY_INPUTS})
    assert resp.status_code == 200
    assert resp.json() == {"G / Search 2": "<ad_copy>Buy now</ad_copy>"}

    [call] = fake_workflow.calls
    assert call["url"].endswith("/workflows/run")
    assert call["headers"] == {"Authorization": "Bearer dify-key"}
    [job] = db_session.query(GenerationJob).all()
    assert job.status == "completed"


@pytest.mark.parametrize(
    ("error", "expected_status", "expected_detail"),
    [
        (WorkflowRequestError("slow", timed_out=True), 504, "Request timeout"),
        (WorkflowRequestError("missing", status_code=404), 404, "Ad copy workflow not found"),
        (WorkflowRequestError("denied", status_code=401), 401, "Unauthorized access to Dify API"),
        (WorkflowRequestError("boom", status_code=429), 429, "Failed to generate ad copy"),
    ],
)
def test_generate_ad_copy_error_mapping(api_client, fake_workflow, monkeypatch, error, expected_status, expected_detail):
    monkeypatch.setattr(settings, "DIFY_API_KEY", "dify-key")
    fake_workflow.error = error
    resp = api_client.post("/ad-copies/generate", json={"inputs": AD_COPY_INPUTS})
    assert resp.status_code == expected_status
    assert resp.json()["detail"] == expected_detail


def test_generate_ad_copy_with_nothing_usable(api_client, fake_workflow, monkeypatch):
    monkeypatch.setattr(settings, "DIFY_API_KEY", "dify-key")
    fake_workflow.response = {"workflow_run_id": "run-1", "data": {"outputs": {"Email 1": "null"}}}
    resp = api_client.post("/ad-copies/generate", json={"inputs": AD_COPY_INPUTS})
    assert resp.status_code == 422
    assert resp.json()["detail"] == "No valid content was generated"
