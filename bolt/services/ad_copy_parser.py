from __future__ import annotations

import html
import re
from typing import Any, Optional

VARIATION_KEYS = (
    "G / Search 1",
    "G / Search 2",
    "LI / Single Image 1",
    "LI / Single Image 2",
    "Email 1",
    "LI / Carousel 1",
    "LI / Carousel 2",
    "LI / Conversation 1",
    "LI / Conversation 2",
    "LI / Documents 1",
    "LI / Documents 2",
    "FB/IG All 1",
    "FB/IG All 2",
    "Reddit All 1",
    "Reddit All 2",
    "Twitter All 1",
    "Twitter All 2",
)

_PLATFORM_PREFIXES = (
    ("G /", "Google"),
    ("LI /", "LinkedIn"),
    ("FB/IG", "Facebook/Instagram"),
    ("Reddit", "Reddit"),
    ("Twitter", "Twitter"),
    ("Email", "Email"),
)
_CONTENT_TYPES = ("Single Image", "Carousel", "Conversation", "Documents", "Search", "Email")

CONVERSATION_HEADING = "## LinkedIn Conversation Ad Content"
CONCEPT_DETAIL_LABELS = ("Visual Elements", "Color Schemes", "Imagery", "Layout", "Alignment", "Resonance")

_RATING_RE = re.compile(r"- \*\*(Concept \d+):\*\* ([^*]+?)(?=\s+- \*\*Concept|\s*$)")
_CONCEPT_RE = re.compile(
    r"- \*\*(Concept\s*\d+):\s*([^*]+)\*\*\s*((?:[\s\S]*?)(?=\s*-\s*\*\*Concept|\s*$))"
)
_DETAIL_RE = re.compile(r"\*\*([\w\s]+):\*\*\s*([^\n]+)")
_BOLD_RE = re.compile(r"\*\*(.*?)\*\*")
_ITALIC_RE = re.compile(r"\*(.*?)\*")
_LINK_RE = re.compile(r"\[(.*?)\]\((.*?)\)")


def platform_for(key: str) -> str:
    for prefix, platform in _PLATFORM_PREFIXES:
        if key.startswith(prefix):
            return platform
    return key


def content_type_for(key: str) -> Optional[str]:
    for content_type in _CONTENT_TYPES:
        if content_type in key:
            return content_type
    return None


def should_display(key: str) -> bool:
    return key in ("Email 1", "LI / Carousel 2") or key.endswith("2")


def title_for(key: str) -> str:
    if key == "LI / Carousel 2":
        return "LinkedIn Carousel Copies"
    if key == "Email 1":
        return "Email Copies"
    content_type = content_type_for(key)
    suffix = f" {content_type}" if content_type else ""
    return f"{platform_for(key)}{suffix} Copies"


def extract_tagged(value: str, tag: str) -> Optional[str]:
    """Return the trimmed text between the first ``<tag>`` and the following ``</tag>``."""
    opening = f"<{tag}>"
    if opening not in value:
        return None
    inner = value.split(opening, 1)[1].split(f"</{tag}>", 1)[0].strip()
    return inner or None


def _non_blank_lines(text: str) -> list[str]:
    return [line for line in text.split("\n") if line.strip()]


def _split_before(text: str, pattern: str) -> list[str]:
    return [part for part in re.split(pattern, text) if part]


def _split_cells(line: str) -> list[str]:
    return [cell.strip() for cell in line.split("|") if cell.strip()]


def parse_conversation_sections(text: str) -> list[dict[str, Any]]:
    sections = []
    for block in _split_before(text, rf"(?={re.escape(CONVERSATION_HEADING)})"):
        lines = _non_blank_lines(block)
        if not lines:
            continue
        subsections: list[dict[str, Any]] = []
        current: Optional[dict[str, Any]] = None
        for raw in lines[1:]:
            line = raw.strip()
            if line.startswith("####"):
                # Checked before "###" so subheadings do not open a new subsection.
                if current is not None:
                    current["content"].append({"type": "subheading", "text": re.sub(r"^####\s+", "", line)})
            elif line.startswith("###"):
                current = {"title": re.sub(r"^###\s+", "", line), "content": []}
                subsections.append(current)
            elif re.match(r"^\d+\.", line):
                if current is not None:
                    current["content"].append({"type": "listItem", "text": re.sub(r"^\d+\.\s+", "", line)})
            elif current is not None:
                current["content"].append({"type": "text", "text": line})
        sections.append({"title": re.sub(r"^##\s+", "", lines[0].strip()), "subsections": subsections})
    return sections


def parse_ad_copy(text: str) -> dict[str, Any]:
    lines = [line.strip() for line in text.split("\n") if line.strip()]
    if lines and lines[0].startswith(CONVERSATION_HEADING):
        return {"format": "conversation", "sections": parse_conversation_sections(text)}

    table_start = next((index for index, line in enumerate(lines) if "|" in line), None)
    if table_start is None:
        return {"format": "lines", "lines": lines}

    rows = [_split_cells(line) for line in lines[table_start + 2 :] if "|" in line]
    return {
        "format": "table",
        "headers": _split_cells(lines[table_start]),
        "rows": [row for row in rows if len(row) >= 2],
    }


def _concept_number(title: str) -> int:
    match = re.search(r"\d+", title)
    return int(match.group(0)) if match else 0


def _empty_concept_details(name: str = "") -> dict[str, str]:
    return {"name": name, **{label: "" for label in CONCEPT_DETAIL_LABELS}}


def parse_carousel_concepts(text: str) -> dict[str, Any]:
    ratings_text, _, selected_text = text.partition("**Selected Concepts:**")
    ratings_text = ratings_text.strip()
    selected_text = selected_text.strip()

    ratings = []
    for match in _RATING_RE.finditer(ratings_text):
        parts = [part.strip() for part in match.group(2).split(",") if part.strip()]
        ratings.append({"concept": match.group(1), "ratings": ", ".join(parts)})

    concepts = []
    for match in _CONCEPT_RE.finditer(selected_text):
        title, name, details_text = match.groups()
        details = _empty_concept_details(name.strip())
        for detail in _DETAIL_RE.finditer(details_text):
            details[detail.group(1).strip()] = detail.group(2).strip()
        concepts.append({"title": f"{title}: {name}", "details": details})

    for expected in ("Concept 1", "Concept 2", "Concept 3"):
        if not any(concept["title"].startswith(expected) for concept in concepts):
            concepts.append({"title": expected, "details": _empty_concept_details()})
    concepts.sort(key=lambda concept: _concept_number(concept["title"]))
    return {"format": "carousel", "ratings": ratings, "concepts": concepts}


def parse_single_image_concepts(text: str) -> dict[str, Any]:
    concepts = []
    for block in _split_before(text, r"(?=Visual Concept \d)"):
        lines = _non_blank_lines(block)
        if not lines:
            continue
        details: dict[str, str] = {}
        for line in lines[1:]:
            if not line.startswith("- "):
                continue
            parts = line[2:].split(": ")
            if len(parts) >= 2 and parts[0] and parts[1]:
                details[parts[0]] = parts[1]
        concepts.append({"title": lines[0], "details": details})
    return {"format": "concepts", "concepts": concepts}


def parse_heading_sections(text: str) -> dict[str, Any]:
    sections = []
    for block in _split_before(text, r"(?=### )"):
        lines = _non_blank_lines(block)
        if not lines:
            continue
        sections.append(
            {
                "title": re.sub(r"^###\s+", "", lines[0]),
                "points": [re.sub(r"^-\s+", "", line) for line in lines[1:]],
            }
        )
    return {"format": "sections", "sections": sections}


def parse_visual_concepts(key: str, text: str) -> dict[str, Any]:
    if key == "LI / Carousel 2":
        return parse_carousel_concepts(text)
    if "LI / Single Image" in key:
        return parse_single_image_concepts(text)
    return parse_heading_sections(text)


def _render_link(match: re.Match) -> str:
    label, href = match.group(1), match.group(2).strip()
    if not href.lower().startswith(("http://", "https://")):
        return label
    return f'<a href="{href}">{label}</a>'


def format_email_line(line: str) -> str:
    """Render inline markdown as HTML; the line is escaped first and only http(s) links survive."""
    line = html.escape(line)
    line = _BOLD_RE.sub(r"<strong>\1</strong>", line)
    line = _ITALIC_RE.sub(r"<em>\1</em>", line)
    return _LINK_RE.sub(_render_link, line)


def parse_email(text: str) -> list[dict[str, Any]]:
    lines = []
    for line in _non_blank_lines(text):
        if line.startswith("Subject:"):
            lines.append({"type": "subject", "text": line})
        else:
            lines.append({"type": "body", "html": format_email_line(line)})
    return lines


def parse_variation(key: str, value: str) -> dict[str, Any]:
    content_type = content_type_for(key)
    variation: dict[str, Any] = {
        "key": key,
        "title": title_for(key),
        "platform": platform_for(key),
        "contentType": content_type,
        "display": should_display(key),
        "adCopy": None,
        "visualConcepts": None,
        "email": None,
    }
    ad_copy = extract_tagged(value, "ad_copy")
    if ad_copy:
        variation["adCopy"] = parse_ad_copy(ad_copy)
    visual = extract_tagged(value, "visual_concept_rationale")
    if visual:
        variation["visualConcepts"] = parse_visual_concepts(key, visual)
    email = extract_tagged(value, "email")
    if email:
        variation["email"] = parse_email(email)
    return variation


def parse_variations(mapping: Any) -> list[dict[str, Any]]:
    """
    Turn the workflow's variation mapping into structured sections.

    Only known variation keys with non-empty string values are kept, in the
    order the workflow emits them.
    """
    if not isinstance(mapping, dict):
        return []
    return [
        parse_variation(key, value)
        for key, value in mapping.items()
        if key in VARIATION_KEYS and isinstance(value, str) and value.strip()
    ]
