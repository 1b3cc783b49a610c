"""Normalize result payloads posted back by external workflows."""
from __future__ import annotations

import html
import json
import re
from typing import Any, Optional
from uuid import UUID

from bolt.db.enums import JobKindEnum
from bolt.db.models import PLACEHOLDER_CONTENT

_ID_QUERY_KEYS = ("analysisId", "jobId", "conversationId")

_HTML_ID_PATTERNS = (
    re.compile(r"data-(?:analysis|job)-id\s*=\s*[\"']([0-9a-fA-F-]{32,36})[\"']"),
    re.compile(r"<!--\s*(?:analysisId|jobId)\s*[:=]\s*([0-9a-fA-F-]{32,36})\s*-->"),
    re.compile(r"(?:analysisId|jobId)\s*[:=]\s*[\"']?([0-9a-fA-F-]{32,36})"),
)

_HTML_TAG_RE = re.compile(r"<\s*[a-zA-Z][^>]*>")
_HEADING_RE = re.compile(r"<h([23])[^>]*>(.*?)</h\1>", re.IGNORECASE | re.DOTALL)
_TAG_STRIP_RE = re.compile(r"<[^>]+>")

AUDIENCE_SECTION_KEYS = {
    "target audience": "targetAudience",
    "job titles": "jobTitles",
    "pain points": "painPoints",
    "goals": "goals",
    "messaging recommendations": "messagingRecommendations",
    "content strategy": "contentStrategy",
}


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    if not value:
        return None
    try:
        return UUID(value.strip())
    except (ValueError, AttributeError):
        return None


def resolve_job_id(
    *,
    query_params: dict[str, str],
    path_id: Optional[str],
    body_text: str,
) -> Optional[UUID]:
    """Resolve the job id: query string first, then path segment, then a marker in the body."""
    for key in _ID_QUERY_KEYS:
        job_id = _parse_uuid(query_params.get(key))
        if job_id:
            return job_id

    job_id = _parse_uuid(path_id)
    if job_id:
        return job_id

    for pattern in _HTML_ID_PATTERNS:
        match = pattern.search(body_text or "")
        if match:
            job_id = _parse_uuid(match.group(1))
            if job_id:
                return job_id
    return None


def is_placeholder_or_empty(content: Any) -> bool:
    if content is None:
        return True
    if isinstance(content, str):
        stripped = content.strip()
        return not stripped or stripped == PLACEHOLDER_CONTENT
    if isinstance(content, (dict, list)):
        return len(content) == 0
    return False


def decode_body(raw_body: bytes, content_type: str | None) -> Any:
    """Return parsed JSON for JSON bodies, text otherwise."""
    text = raw_body.decode("utf-8", errors="replace")
    looks_json = "json" in (content_type or "").lower() or text.lstrip()[:1] in ("{", "[")
    if looks_json:
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    return text


def _unwrap_text_field(payload: dict[str, Any]) -> Optional[str]:
    for key in ("content", "output", "html"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value
    return None


def looks_like_html(text: str) -> bool:
    return bool(_HTML_TAG_RE.search(text))


def _slugify(heading: str) -> str:
    words = re.findall(r"[a-zA-Z0-9]+", heading.lower())
    if not words:
        return "section"
    return words[0] + "".join(word.capitalize() for word in words[1:])


def extract_sections(html_text: str, known: dict[str, str] | None = None) -> dict[str, str]:
    """Split HTML into sections keyed by their <h2>/<h3> headings."""
    known = known or {}
    headings = list(_HEADING_RE.finditer(html_text))
    sections: dict[str, str] = {}
    for index, match in enumerate(headings):
        title = html.unescape(_TAG_STRIP_RE.sub("", match.group(2))).strip()
        if not title:
            continue
        start = match.end()
        end = headings[index + 1].start() if index + 1 < len(headings) else len(html_text)
        body = html_text[start:end].strip()
        if not body:
            continue
        key = known.get(title.lower().rstrip(":"), _slugify(title))
        sections[key] = body
    return sections


def wrap_html(text: str, css_class: str) -> str:
    stripped = text.strip()
    if stripped.lower().startswith("<div"):
        return stripped
    return f'<div class="{css_class}">{stripped}</div>'


def normalize_callback_content(kind: JobKindEnum, payload: Any) -> Any:
    """Turn a callback payload into the value stored on the job record.

    Returns None when the payload, once unwrapped, carries no real result.
    """
    if isinstance(payload, dict):
        text = _unwrap_text_field(payload)
        if text is None:
            return payload
        payload = text
    elif isinstance(payload, list):
        return payload

    text = str(payload).strip()
    if is_placeholder_or_empty(text):
        return None
    if kind == JobKindEnum.audience_analysis:
        sections = extract_sections(text, AUDIENCE_SECTION_KEYS)
        if sections:
            return sections
        return wrap_html(text, "analysis-content")
    if looks_like_html(text):
        return wrap_html(text, f"{kind.value.replace('_', '-')}-content")
    return text
