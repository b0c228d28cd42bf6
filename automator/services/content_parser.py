"""Parse raw Claude responses into typed course sections."""

import json
import logging
import re
from typing import Any, Optional

from automator.models.course import SECTION_TYPES, CourseFormData, Section, SectionType
from automator.utils.errors import EmptyResponseError

logger = logging.getLogger(__name__)

FENCED_JSON_RE = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL)
BARE_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)

# Recognized "##" headings for the heuristic split, Romanian and English
HEADING_PATTERNS: dict[SectionType, re.Pattern[str]] = {
    "lesson-plan": re.compile(
        r"##\s*(?:Plan de lecție|Lesson Plan)[^\n]*\n?(.*?)(?=\n##(?!#)|\Z)", re.IGNORECASE | re.DOTALL
    ),
    "slides": re.compile(
        r"##\s*(?:Slide-uri|Prezentare|Slides)[^\n]*\n?(.*?)(?=\n##(?!#)|\Z)", re.IGNORECASE | re.DOTALL
    ),
    "trainer-notes": re.compile(
        r"##\s*(?:Note pentru trainer|Trainer Notes)[^\n]*\n?(.*?)(?=\n##(?!#)|\Z)",
        re.IGNORECASE | re.DOTALL,
    ),
    "exercises": re.compile(
        r"##\s*(?:Exerciții|Exercitii|Exercises)[^\n]*\n?(.*?)(?=\n##(?!#)|\Z)",
        re.IGNORECASE | re.DOTALL,
    ),
}

SECTION_TITLES: dict[SectionType, dict[str, str]] = {
    "lesson-plan": {"ro": "Plan de lecție", "en": "Lesson Plan"},
    "slides": {"ro": "Slide-uri prezentare", "en": "Presentation Slides"},
    "trainer-notes": {"ro": "Note pentru trainer", "en": "Trainer Notes"},
    "exercises": {"ro": "Exerciții", "en": "Exercises"},
}

# Keywords that type a JSON section by its title, checked in order
TITLE_KEYWORDS: list[tuple[SectionType, tuple[str, ...]]] = [
    ("slides", ("slide", "prezentare", "presentation")),
    ("trainer-notes", ("trainer", "formator")),
    ("exercises", ("exerci", "suport", "support", "handout")),
    ("lesson-plan", ("plan", "obiectiv", "objective", "structur")),
]


def section_title(section_type: SectionType, locale: str) -> str:
    return SECTION_TITLES[section_type].get(locale, SECTION_TITLES[section_type]["en"])


def infer_section_type(title: str) -> SectionType:
    """Map a free-form section title to a section type."""
    lowered = title.lower()
    for section_type, keywords in TITLE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return section_type
    return "lesson-plan"


def extract_json_payload(text: str) -> Optional[dict[str, Any]]:
    """
    Find an embedded JSON object in a response.

    A fenced ```json block wins over a bare object.

    Returns:
        The decoded object, or None if nothing decodes to a dict
    """
    candidates = [m.group(1) for m in FENCED_JSON_RE.finditer(text)]
    bare = BARE_JSON_RE.search(text)
    if bare:
        candidates.append(bare.group())

    for candidate in candidates:
        try:
            payload = json.loads(candidate)
        except json.JSONDecodeError as e:
            logger.debug(f"JSON candidate rejected: {e}")
            continue
        if isinstance(payload, dict):
            return payload
    return None


def _flatten_section(raw: dict[str, Any]) -> Optional[Section]:
    title = str(raw.get("title") or raw.get("name") or "").strip()
    parts: list[str] = []

    content = raw.get("content")
    if isinstance(content, str) and content.strip():
        parts.append(content.strip())

    for category in raw.get("categories") or []:
        if not isinstance(category, dict):
            continue
        name = str(category.get("name") or "").strip()
        body = str(category.get("content") or "").strip()
        if not body:
            continue
        parts.append(f"### {name}\n\n{body}" if name else body)

    if not parts:
        return None

    raw_type = raw.get("type")
    section_type = raw_type if raw_type in SECTION_TYPES else infer_section_type(title)
    return Section(type=section_type, title=title or section_type, content="\n\n".join(parts))


def parse_json_sections(text: str) -> list[Section]:
    """First tier: sections from an embedded JSON payload."""
    payload = extract_json_payload(text)
    if payload is None:
        return []

    raw_sections = payload.get("sections")
    if not isinstance(raw_sections, list):
        return []

    sections = []
    for raw in raw_sections:
        if isinstance(raw, dict):
            section = _flatten_section(raw)
            if section is not None:
                sections.append(section)
    return sections


def parse_heading_sections(text: str, locale: str) -> list[Section]:
    """Second tier: split on recognized ## headings."""
    sections = []
    for section_type, pattern in HEADING_PATTERNS.items():
        match = pattern.search(text)
        if match and match.group(1).strip():
            sections.append(
                Section(
                    type=section_type,
                    title=section_title(section_type, locale),
                    content=match.group(1).strip(),
                )
            )
    return sections


def parse_content(text: str, form_data: CourseFormData) -> list[Section]:
    """
    Parse a Claude response into typed sections.

    Tries an embedded JSON payload, then recognized headings, then wraps the
    whole response as a single lesson plan.

    Args:
        text: Raw response text
        form_data: Form the response was generated for (drives title language)

    Returns:
        At least one section with non-empty content

    Raises:
        EmptyResponseError: If the response has no text at all
    """
    if not text or not text.strip():
        raise EmptyResponseError("Claude returned an empty response")

    sections = parse_json_sections(text)
    if sections:
        logger.info(f"Parsed {len(sections)} sections from JSON payload")
        return sections

    sections = parse_heading_sections(text, form_data.locale)
    if sections:
        logger.info(f"Extracted {len(sections)} sections from headings")
        return sections

    logger.info("No structure recognized, using whole response as lesson plan")
    return [
        Section(
            type="lesson-plan",
            title=section_title("lesson-plan", form_data.locale),
            content=text.strip(),
        )
    ]
