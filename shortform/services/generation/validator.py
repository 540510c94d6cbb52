"""
Final validation: size bounds, CTA link placement, character counts.

``normalize`` mutates the batch in place and is idempotent: running it twice
with the same link gives the same batch as running it once.
"""

from __future__ import annotations

import logging

from shortform.core.constants import (
    ELLIPSIS,
    LINK_PLACEHOLDER_RE,
    POST_CHAR_LIMIT,
    TRUNCATE_AT,
    URL_RE,
)
from shortform.schemas import ConceptRecord, GenerationBatch, WhatWhyWhere

logger = logging.getLogger(__name__)

_TRAILING_PUNCTUATION = ".!?;:,…-–— \t\n"
_LINK_SEPARATOR = ": "


def truncate_text(text: str, limit: int = POST_CHAR_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - len(ELLIPSIS)] + ELLIPSIS


def character_count_label(text: str) -> str:
    return f"{len(text)}/{POST_CHAR_LIMIT}"


def place_link(cta: str, link: str) -> str:
    """
    Make ``link`` the final token of ``cta`` with nothing after it.

    Priority: already ends with the link; placeholder token; first URL; append.
    """
    cta = (cta or "").strip()
    if not link:
        return cta
    if cta.endswith(link):
        return cta

    placeholder = LINK_PLACEHOLDER_RE.search(cta)
    if placeholder:
        return cta[: placeholder.start()] + link

    url = URL_RE.search(cta)
    if url:
        return cta[: url.start()] + link

    body = cta.rstrip(_TRAILING_PUNCTUATION)
    if not body:
        return link
    return f"{body}{_LINK_SEPARATOR}{link}"


def bound_cta(cta: str, link: str) -> str:
    """Enforce the size bound without cutting the trailing link off."""
    if len(cta) <= POST_CHAR_LIMIT:
        return cta
    if not link or not cta.endswith(link) or len(link) > TRUNCATE_AT:
        return truncate_text(cta)
    prefix = cta[: len(cta) - len(link)]
    room = POST_CHAR_LIMIT - len(link) - len(ELLIPSIS) - 1
    return prefix[:room].rstrip() + ELLIPSIS + " " + link


def normalize_concept(concept: ConceptRecord, link: str) -> ConceptRecord:
    posts: list[str] = []
    for i, post in enumerate(concept.posts, start=1):
        post = (post or "").strip()
        if not post:
            continue
        if len(post) > POST_CHAR_LIMIT:
            logger.warning(
                "Concept %d post %d exceeds %d chars (%d); truncating",
                concept.number, i, POST_CHAR_LIMIT, len(post),
            )
            post = truncate_text(post)
        posts.append(post)
    concept.posts = posts
    concept.character_counts = [character_count_label(p) for p in posts]

    cta = place_link(concept.cta, link)
    if len(cta) > POST_CHAR_LIMIT:
        logger.warning(
            "Concept %d CTA exceeds %d chars (%d); truncating",
            concept.number, POST_CHAR_LIMIT, len(cta),
        )
        cta = bound_cta(cta, link)
    concept.cta = cta

    if not isinstance(concept.what_why_where, WhatWhyWhere):
        concept.what_why_where = WhatWhyWhere.coerce(concept.what_why_where)
    concept.title = (concept.title or "").strip()
    return concept


def normalize(batch: GenerationBatch, link: str) -> GenerationBatch:
    """
    Normalize every concept in place; drop concepts left without posts and
    renumber the survivors 1..N.
    """
    kept: list[ConceptRecord] = []
    for concept in batch.concepts:
        normalize_concept(concept, link)
        if not concept.posts:
            logger.warning("Dropping concept %d (%r): no post content", concept.number, concept.title)
            continue
        kept.append(concept)
    for number, concept in enumerate(kept, start=1):
        concept.number = number
        concept.title = concept.title or f"Concept {number}"
    batch.concepts = kept
    return batch
