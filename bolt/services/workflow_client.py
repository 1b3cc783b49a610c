from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

import httpx
from fastapi import HTTPException, status

from bolt.config import settings

logger = logging.getLogger(__name__)

# (field name, filename, content bytes, content type)
MultipartFile = tuple[str, str, bytes, str]


class WorkflowConfigError(RuntimeError):
    pass


@dataclass
class WorkflowRequestError(RuntimeError):
    message: str
    status_code: int | None = None
    details: Any = None
    timed_out: bool = False

    def __str__(self) -> str:
        status_part = f" status={self.status_code}" if self.status_code is not None else ""
        timeout_part = " timed_out" if self.timed_out else ""
        return f"{self.message}{status_part}{timeout_part}".strip()


class WorkflowClient:
    """HTTP client for n8n webhooks and the Dify workflow API."""

    def __init__(self, *, timeout_seconds: float | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self.timeout_seconds = float(timeout_seconds or settings.WORKFLOW_TIMEOUT_SECONDS)
        self._transport = transport

    def post_json(self, url: str | None, payload: dict[str, Any], *, headers: dict[str, str] | None = None) -> Any:
        target = self._require_url(url)
        resp = self._send("POST", target, json=payload, headers=headers)
        return self._decode(resp)

    def post_multipart(
        self,
        url: str | None,
        *,
        fields: dict[str, str],
        files: Sequence[MultipartFile],
    ) -> Any:
        target = self._require_url(url)
        multipart = {name: (filename, content, content_type) for name, filename, content, content_type in files}
        resp = self._send("POST", target, data=fields, files=multipart)
        return self._decode(resp)

    def run_dify_workflow(self, *, inputs: dict[str, Any], user: str) -> dict[str, Any]:
        api_key = (settings.DIFY_API_KEY or "").strip()
        if not api_key:
            raise WorkflowConfigError("DIFY_API_KEY is required")
        url = f"{settings.DIFY_API_BASE_URL.rstrip('/')}/workflows/run"
        body = self.post_json(
            url,
            {"inputs": inputs, "response_mode": "blocking", "user": user},
            headers={"Authorization": f"Bearer {api_key}"},
        )
        if not isinstance(body, dict):
            raise WorkflowRequestError("Dify returned a non-object payload", details=body)
        return body

    def _require_url(self, url: str | None) -> str:
        cleaned = (url or "").strip()
        if not cleaned:
            raise WorkflowConfigError("Workflow URL is not configured")
        return cleaned

    def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                resp = client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise WorkflowRequestError(f"Workflow request timed out: {url}", timed_out=True) from exc
        except httpx.HTTPError as exc:
            raise WorkflowRequestError(f"Workflow request failed: {exc}") from exc

        if resp.status_code >= 400:
            self._raise_request_error(resp)
        return resp

    def _decode(self, resp: httpx.Response) -> Any:
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError:
            return resp.text

    def _raise_request_error(self, resp: httpx.Response) -> None:
        message = f"Workflow request failed ({resp.status_code})"
        try:
            details: Any = resp.json()
        except ValueError:
            details = resp.text[:2000] or None
        if isinstance(details, dict):
            upstream = details.get("error") or details.get("message")
            if isinstance(upstream, str) and upstream.strip():
                message = upstream.strip()
        raise WorkflowRequestError(message=message, status_code=resp.status_code, details=details)


def raise_for_workflow_error(exc: Exception, *, context: str) -> None:
    """Translate workflow client failures into HTTP errors for route handlers."""
    if isinstance(exc, WorkflowConfigError):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"{context}: {exc}",
        ) from exc
    if isinstance(exc, WorkflowRequestError):
        if exc.timed_out:
            raise HTTPException(
                status_code=status.HTTP_504_GATEWAY_TIMEOUT,
                detail=f"{context}: the workflow did not respond in time. Please try again.",
            ) from exc
        if exc.status_code is not None:
            raise HTTPException(status_code=exc.status_code, detail=f"{context}: {exc.message}") from exc
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"{context}: {exc.message}") from exc
    raise exc
