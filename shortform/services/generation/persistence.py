"""
Derived-page persistence: one destination page per ConceptRecord.

A rejected page is replaced by a minimal fallback page so the rest of the
batch is still written.
"""

import logging
from typing import Any

from shortform.core.constants import RICH_TEXT_CHUNK
from shortform.providers import NotionServiceError, NotionWorkspace
from shortform.schemas import ConceptRecord, GenerationBatch, PersistedPage

from .errors import PersistenceFailure

logger = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Blocks
# -----------------------------------------------------------------------------

def rich_text(content: str) -> list[dict[str, Any]]:
    """Split text into runs under the workspace's per-run character limit."""
    content = content or ""
    chunks = [content[i:i + RICH_TEXT_CHUNK] for i in range(0, len(content), RICH_TEXT_CHUNK)] or [""]
    return [{"type": "text", "text": {"content": chunk}} for chunk in chunks]


def _block(kind: str, content: str) -> dict[str, Any]:
    return {"object": "block", "type": kind, kind: {"rich_text": rich_text(content)}}


def heading_2(content: str) -> dict[str, Any]:
    return _block("heading_2", content)


def heading_3(content: str) -> dict[str, Any]:
    return _block("heading_3", content)


def paragraph(content: str) -> dict[str, Any]:
    return _block("paragraph", content)


def divider() -> dict[str, Any]:
    return {"object": "block", "type": "divider", "divider": {}}


def page_title(concept: ConceptRecord) -> str:
    return f"CONCEPT #{concept.number}: {concept.title}"


def concept_blocks(concept: ConceptRecord) -> list[dict[str, Any]]:
    blocks = [heading_2(page_title(concept)), heading_3("Main Content:")]
    several = len(concept.posts) > 1
    for i, post in enumerate(concept.posts, start=1):
        blocks.append(paragraph(f"Post {i}: {post}" if several else post))
    blocks.append(paragraph("Character Count: " + ", ".join(concept.character_counts)))

    blocks.append(heading_3("Single Aha Moment:"))
    blocks.append(paragraph(concept.aha_moment))

    www = concept.what_why_where
    blocks.append(heading_3("What-Why-Where Check:"))
    blocks.append(paragraph(f"✅ WHAT: {www.what}"))
    blocks.append(paragraph(f"✅ WHY: {www.why}"))
    blocks.append(paragraph(f"✅ WHERE: {www.where}"))

    blocks.append(divider())
    blocks.append(heading_3("Call To Action:"))
    blocks.append(paragraph(concept.cta))
    blocks.append(heading_3("Validation:"))
    blocks.append(paragraph(concept.quality_note))
    return blocks


# -----------------------------------------------------------------------------
# Writer
# -----------------------------------------------------------------------------

class ConceptPageWriter:
    def __init__(
        self,
        workspace: NotionWorkspace,
        database_id: str,
        *,
        title_property: str = "Title",
        relation_property: str = "E-mails",
    ):
        self.workspace = workspace
        self.database_id = database_id
        self.title_property = title_property
        self.relation_property = relation_property

    def _properties(self, title: str, source_id: str) -> dict[str, Any]:
        return {
            self.title_property: {"title": [{"text": {"content": title[:RICH_TEXT_CHUNK]}}]},
            self.relation_property: {"relation": [{"id": source_id}]},
        }

    async def write_concept(self, concept: ConceptRecord, source_id: str) -> PersistedPage:
        """
        Raises:
            PersistenceFailure: the workspace rejected the page.
        """
        title = page_title(concept)
        blocks = concept_blocks(concept)
        try:
            page = await self.workspace.create_page(self.database_id, self._properties(title, source_id), blocks)
        except NotionServiceError as e:
            raise PersistenceFailure(concept.number, str(e), cause=e) from e
        return PersistedPage(id=page["id"], title=title, concept_number=concept.number, blocks_count=len(blocks))

    async def write_fallback(self, concept: ConceptRecord, source_id: str) -> PersistedPage:
        title = f"Concept {concept.number} - Creation Error"
        body = (
            f"Error creating structured page for concept {concept.number}. Check logs for details.\n\n"
            "Original content:\n" + "\n\n".join(concept.posts)
        )
        page = await self.workspace.create_page(
            self.database_id,
            self._properties(title, source_id),
            [paragraph(body)],
        )
        return PersistedPage(id=page["id"], title=title, concept_number=concept.number, blocks_count=1, error=True)

    async def write_batch(self, batch: GenerationBatch, source_id: str) -> list[PersistedPage]:
        """Write every concept in order; failures fall back per concept and never stop the batch."""
        pages: list[PersistedPage] = []
        for concept in batch.concepts:
            try:
                page = await self.write_concept(concept, source_id)
                logger.info("Created page %s for concept %d (%d blocks)", page.id, concept.number, page.blocks_count)
            except PersistenceFailure as e:
                logger.warning("PersistenceFailure: %s; writing fallback page", e)
                try:
                    page = await self.write_fallback(concept, source_id)
                except NotionServiceError as fallback_error:
                    logger.error("Fallback page for concept %d also failed: %s", concept.number, fallback_error)
                    continue
            pages.append(page)
        return pages
