import json

import httpx
import pytest
from fastapi import HTTPException

from bolt.config import settings
from bolt.services.generation_jobs import DifyResponseError, filter_variations, parse_dify_outputs
from bolt.services.workflow_client import (
    WorkflowClient,
    WorkflowConfigError,
    WorkflowRequestError,
    raise_for_workflow_error,
)


def _client(handler) -> WorkflowClient:
    return WorkflowClient(timeout_seconds=5, transport=httpx.MockTransport(handler))


def test_post_json_returns_decoded_body():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"output": "done"})

    assert _client(handler).post_json("https://n8n.test/hook", {"a": 1}) == {"output": "done"}
    assert seen["body"] == {"a": 1}


def test_post_json_falls_back_to_text():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<p>html reply</p>")

    assert _client(handler).post_json("https://n8n.test/hook", {}) == "<p>html reply</p>"


def test_upstream_error_carries_status_and_details():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"message": "Workflow not active"})

    with pytest.raises(WorkflowRequestError) as excinfo:
        _client(handler).post_json("https://n8n.test/hook", {})
    assert excinfo.value.status_code == 404
    assert excinfo.value.message == "Workflow not active"
    assert excinfo.value.details == {"message": "Workflow not active"}


def test_timeout_is_flagged():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(WorkflowRequestError) as excinfo:
        _client(handler).post_json("https://n8n.test/hook", {})
    assert excinfo.value.timed_out is True


def test_missing_url_is_a_config_error():
    with pytest.raises(WorkflowConfigError):
        _client(lambda request: httpx.Response(200)).post_json(None, {})


def test_multipart_sends_fields_and_files():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.content
        return httpx.Response(200, json=[{"output": "ok"}])

    result = _client(handler).post_multipart(
        "https://n8n.test/chat",
        fields={"chatInput": "hello"},
        files=[("data0", "notes.txt", b"file body", "text/plain")],
    )
    assert result == [{"output": "ok"}]
    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="data0"; filename="notes.txt"' in seen["body"]
    assert b"file body" in seen["body"]


def test_dify_run_requires_api_key(monkeypatch):
    monkeypatch.setattr(settings, "DIFY_API_KEY", None)
    with pytest.raises(WorkflowConfigError):
        _client(lambda request: httpx.Response(200)).run_dify_workflow(inputs={}, user="a@b.c")


def test_dify_run_posts_blocking_request(monkeypatch):
    monkeypatch.setattr(settings, "DIFY_API_KEY", "secret")
    monkeypatch.setattr(settings, "DIFY_API_BASE_URL", "https://dify.test/v1/")
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"workflow_run_id": "r1", "data": {"outputs": {}}})

    _client(handler).run_dify_workflow(inputs={"campaign_name": "x"}, user="me@vertodigital.com")
    assert seen["url"] == "https://dify.test/v1/workflows/run"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == {"inputs": {"campaign_name": "x"}, "response_mode": "blocking", "user": "me@vertodigital.com"}


@pytest.mark.parametrize(
    ("error", "expected_status"),
    [
        (WorkflowConfigError("missing"), 500),
        (WorkflowRequestError("slow", timed_out=True), 504),
        (WorkflowRequestError("nope", status_code=403), 403),
        (WorkflowRequestError("network"), 502),
    ],
)
def test_raise_for_workflow_error(error, expected_status):
    with pytest.raises(HTTPException) as excinfo:
        raise_for_workflow_error(error, context="Failed")
    assert excinfo.value.status_code == expected_status


def test_parse_dify_outputs_decodes_json_strings():
    outputs = parse_dify_outputs(
        {
            "workflow_run_id": "r1",
            "data": {"status": "succeeded", "outputs": {"meta": '{"score": 3}', "text": "{not json", "copy": "hi"}},
        }
    )
    assert outputs == {"meta": {"score": 3}, "text": "{not json", "copy": "hi"}


@pytest.mark.parametrize(
    "response",
    [
        {"data": {"outputs": {"a": "b"}}},
        {"workflow_run_id": "r1"},
        {"workflow_run_id": "r1", "data": {"status": "failed", "error": "quota"}},
        {"workflow_run_id": "r1", "data": {"outputs": {}}},
    ],
)
def test_parse_dify_outputs_rejects_bad_responses(response):
    with pytest.raises(DifyResponseError):
        parse_dify_outputs(response)


def test_filter_variations_drops_placeholders():
    assert filter_variations(
        {"a": "keep me", "b": "Not generated", "c": "null", "d": "undefined", "e": "", "f": {"x": 1}}
    ) == {"a": "keep me"}
