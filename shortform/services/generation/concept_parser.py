"""
Concept parsing: model output -> canonical ConceptRecord list.

Two input shapes reach this module:
  - annotated markdown with one "CONCEPT #N: title" heading per concept and
    labeled sub-sections ("Main Content:", "Single Aha Moment:", ...);
  - an extracted JSON payload ({"tweetConcepts": [...]}, {"concepts": [...]},
    a bare list, or a single concept object).

Either way, a failure inside one concept yields a sentinel record flagged with
``parse_error`` and never discards the rest of the batch. Numbers are assigned
by position (1-based), not taken from the model.
"""

from __future__ import annotations

import logging
import re
from typing import Any

from pydantic import ValidationError

from shortform.core.constants import RAW_FALLBACK_CHARS
from shortform.schemas import ConceptRecord, WhatWhyWhere

logger = logging.getLogger(__name__)

PARSE_ERROR_NOTE = "parse error"

_HEADING_RE = re.compile(
    r"^[ \t>#*_]*(?:CONCEPT|TWEET)[ \t]*#[ \t]*(\d+)[ \t*_]*[:.\-–—]?[ \t]*(?P<title>.*)$",
    re.IGNORECASE | re.MULTILINE,
)

# Label alternatives, longest spelling first so "Single Aha Moment" wins over "Aha Moment".
_LABELS: tuple[tuple[str, str], ...] = (
    ("main", r"Main[ \t]+Content"),
    ("aha", r"(?:Single[ \t]+)?Aha[ \t]+Moment"),
    ("www", r"What[ \t]*[-/][ \t]*Why[ \t]*[-/][ \t]*Where(?:[ \t]+Check)?"),
    ("cta", r"(?:Call[ \t-]+To[ \t-]+Action|CTA(?:[ \t]+(?:Tweet|Post))?)"),
    ("validation", r"(?:Validation|Quality[ \t]+Note)"),
    ("count", r"Character[ \t]+Counts?"),
)
_LABEL_RE = re.compile(
    r"^[ \t>#*_]*(?:"
    + "|".join(f"(?P<{name}>{pattern})" for name, pattern in _LABELS)
    + r")[ \t*_]*:[ \t*_]*",
    re.IGNORECASE | re.MULTILINE,
)
_POST_MARKER_RE = re.compile(
    r"^[ \t>#*_]*(?:Post|Tweet)[ \t]*#?[ \t]*\d+[ \t*_]*[:.)][ \t*_]*",
    re.IGNORECASE | re.MULTILINE,
)


class ConceptSectionError(ValueError):
    """One concept section has none of the expected labeled sub-sections."""


# =============================================================================
# MARKDOWN SECTIONS
# =============================================================================

def split_concept_sections(text: str) -> list[tuple[str, str]]:
    """Return (heading title, section body) per concept; pre-heading prose is dropped."""
    matches = list(_HEADING_RE.finditer(text or ""))
    sections: list[tuple[str, str]] = []
    for i, m in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(text)
        title = m.group("title").strip().strip("*_#:").strip()
        sections.append((title, text[m.end():end]))
    return sections


def labeled_spans(body: str) -> dict[str, str]:
    """Map label -> text up to the next label. First occurrence of each label wins."""
    hits = list(_LABEL_RE.finditer(body))
    spans: dict[str, str] = {}
    for i, m in enumerate(hits):
        name = m.lastgroup
        end = hits[i + 1].start() if i + 1 < len(hits) else len(body)
        if name and name not in spans:
            spans[name] = body[m.end():end].strip()
    return spans


def split_posts(main_content: str) -> list[str]:
    """Split on "Post N:" markers when present; otherwise the whole span is one post."""
    markers = list(_POST_MARKER_RE.finditer(main_content))
    if not markers:
        text = _clean_block(main_content)
        return [text] if text else []
    posts: list[str] = []
    for i, m in enumerate(markers):
        end = markers[i + 1].start() if i + 1 < len(markers) else len(main_content)
        text = _clean_block(main_content[m.end():end])
        if text:
            posts.append(text)
    return posts


def _clean_block(text: str) -> str:
    lines = [line.rstrip() for line in (text or "").strip().splitlines()]
    # Drop horizontal rules models put between sub-sections.
    lines = [line for line in lines if line.strip() not in ("---", "***", "___")]
    return "\n".join(lines).strip()


def parse_concept_section(number: int, heading_title: str, body: str) -> ConceptRecord:
    spans = labeled_spans(body)
    if not any(name in spans for name in ("main", "aha", "www", "cta", "validation")):
        raise ConceptSectionError(f"concept {number} has no labeled sub-sections")
    return ConceptRecord(
        number=number,
        title=heading_title or f"Concept {number}",
        posts=split_posts(spans.get("main", "")),
        aha_moment=_clean_block(spans.get("aha", "")),
        what_why_where=WhatWhyWhere.from_text(spans.get("www", "")),
        cta=_clean_block(spans.get("cta", "")),
        quality_note=_clean_block(spans.get("validation", "")),
    )


def parse_error_sentinel(number: int, raw: str = "", reason: str = "") -> ConceptRecord:
    """Stand-in for a concept that failed structured parsing; keeps the raw text for review."""
    raw_text = _clean_block(raw)
    return ConceptRecord(
        number=number,
        title=f"Concept {number} - Parse Error",
        posts=[raw_text] if raw_text else [],
        aha_moment="Parse error occurred",
        what_why_where=WhatWhyWhere(),
        cta="",
        quality_note=PARSE_ERROR_NOTE + (f": {reason}" if reason else ""),
        parse_error=True,
    )


def raw_response_concept(text: str) -> ConceptRecord:
    """Last resort when no concept heading parses: first chars of the response as one post."""
    return ConceptRecord(
        number=1,
        title="Raw Model Response",
        posts=[text.strip()[:RAW_FALLBACK_CHARS]],
        aha_moment="Unable to parse structured response",
        cta="",
        quality_note="unstructured response: no concept sections found",
    )


def parse_concept_sections(text: str) -> list[ConceptRecord]:
    """
    Parse annotated markdown into concepts.

    Never returns an empty list for non-empty input: with no recognizable
    concept headings the whole response degrades to a single raw concept.
    """
    if not text or not text.strip():
        return []
    concepts: list[ConceptRecord] = []
    for index, (title, body) in enumerate(split_concept_sections(text), start=1):
        try:
            concept = parse_concept_section(index, title, body)
        except (ConceptSectionError, ValidationError, ValueError) as e:
            logger.warning("ConceptParseDegradation: concept %d replaced by sentinel (%s)", index, e)
            concept = parse_error_sentinel(index, body, str(e))
        concepts.append(concept)
        logger.debug("Parsed concept %d: %r", index, concept.title)
    if not concepts:
        logger.warning("No concept sections found; degrading to raw response concept")
        return [raw_response_concept(text)]
    return concepts


# =============================================================================
# JSON PAYLOADS
# =============================================================================

_LIST_KEYS = ("tweetConcepts", "concepts", "tweet_concepts", "items")


def _concept_items(data: Any) -> list[Any]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in _LIST_KEYS:
            value = data.get(key)
            if isinstance(value, list) and value:
                return value
        if ConceptRecord.has_concept_fields(data):
            return [data]
        # e.g. {"error": ...} or {"reason": ...}: not a concept at all
        logger.warning("JSON object has no concept fields; keys=%s", sorted(data)[:10])
        return []
    raise ValueError(f"Expected JSON object or array, got {type(data).__name__}")


def concepts_from_payload(data: Any) -> list[ConceptRecord]:
    """
    Map an extracted JSON payload onto ConceptRecords.

    Handles multiple response formats:
    - {"tweetConcepts": [...]} / {"concepts": [...]}
    - [{...}, ...]  # direct array
    - {...}  # single concept, only if it has a title, posts or CTA key

    Returns an empty list for an object with no concept fields.

    Raises:
        ValueError: the payload is not an object or array.
    """
    concepts: list[ConceptRecord] = []
    for index, item in enumerate(_concept_items(data), start=1):
        if not isinstance(item, dict):
            logger.warning("ConceptParseDegradation: concept %d is %s, not an object", index, type(item).__name__)
            concepts.append(parse_error_sentinel(index, str(item), "not an object"))
            continue
        try:
            concepts.append(ConceptRecord(**{**item, "number": index}))
        except ValidationError as e:
            logger.warning("ConceptParseDegradation: concept %d failed validation: %s", index, e)
            concepts.append(parse_error_sentinel(index, "", "validation failed"))
    return concepts
