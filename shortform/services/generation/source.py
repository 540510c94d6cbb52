"""
Source document access: workspace blocks -> one plain-text string.

Also reads the optional prompt page, which uses the same flattening.
"""

import logging
from typing import Any, Iterable, Optional

from shortform.prompts import DEFAULT_CONCEPT_PROMPT
from shortform.providers import NotionServiceError, NotionWorkspace

from .errors import SourceDocumentError

logger = logging.getLogger(__name__)

_HEADING_PREFIX = {"heading_1": "# ", "heading_2": "## ", "heading_3": "### "}


def segment_text(block: dict[str, Any]) -> str:
    """Concatenated plain_text of a block's rich-text runs."""
    body = block.get(block.get("type") or "") or {}
    runs = body.get("rich_text") or []
    return "".join(run.get("plain_text") or "" for run in runs if isinstance(run, dict))


def flatten_segments(blocks: Iterable[dict[str, Any]]) -> str:
    """
    Join typed segments into one string.

    Headings get markdown hashes, bulleted items "• ", numbered items "1. ",
    quotes "> ", code is fenced. Empty and unsupported segments are skipped.
    """
    out: list[str] = []
    for block in blocks:
        kind = block.get("type")
        text = segment_text(block)
        if not text:
            continue
        if kind == "paragraph":
            out.append(text + "\n\n")
        elif kind in _HEADING_PREFIX:
            out.append(_HEADING_PREFIX[kind] + text + "\n\n")
        elif kind == "bulleted_list_item":
            out.append("• " + text + "\n")
        elif kind == "numbered_list_item":
            out.append("1. " + text + "\n")
        elif kind == "quote":
            out.append("> " + text + "\n\n")
        elif kind == "code":
            out.append("```\n" + text + "\n```\n\n")
    return "".join(out).strip()


def _compact_id(value: Optional[str]) -> str:
    return (value or "").replace("-", "").lower()


async def verify_source_page(
    workspace: NotionWorkspace,
    page_id: str,
    expected_database_id: Optional[str],
) -> bool:
    """
    True when the page lives in ``expected_database_id`` (or no database is configured).

    Raises:
        SourceDocumentError: the page is not visible to the integration.
        NotionServiceError: any other workspace failure.
    """
    if not expected_database_id:
        return True
    try:
        page = await workspace.retrieve_page(page_id)
    except NotionServiceError as e:
        if e.not_found:
            raise SourceDocumentError(
                f"Could not find page {page_id}. The page or its parent database "
                "is probably not shared with the integration."
            ) from e
        raise
    parent = page.get("parent") or {}
    received = _compact_id(parent.get("database_id")) if parent.get("type") == "database_id" else ""
    if received != _compact_id(expected_database_id):
        logger.warning(
            "Page %s is not in the source database (expected %s, got %s)",
            page_id, _compact_id(expected_database_id), received or "not a database page",
        )
        return False
    return True


async def read_source_text(workspace: NotionWorkspace, page_id: str) -> str:
    """
    Raises:
        SourceDocumentError: the page has no readable text segments.
    """
    blocks = await workspace.list_block_children(page_id)
    text = flatten_segments(blocks)
    if not text:
        raise SourceDocumentError(f"No readable content blocks found in page {page_id}")
    logger.info("Read %d chars from source %s (%d blocks)", len(text), page_id, len(blocks))
    return text


async def load_prompt_template(workspace: Optional[NotionWorkspace], prompt_page_id: Optional[str]) -> str:
    """Prompt page content, or the built-in methodology when unset, empty or unreadable."""
    if not prompt_page_id or workspace is None:
        return DEFAULT_CONCEPT_PROMPT
    try:
        text = flatten_segments(await workspace.list_block_children(prompt_page_id))
    except NotionServiceError as e:
        logger.warning("Could not read prompt page %s (%s); using default prompt", prompt_page_id, e)
        return DEFAULT_CONCEPT_PROMPT
    if not text:
        logger.warning("Prompt page %s is empty; using default prompt", prompt_page_id)
        return DEFAULT_CONCEPT_PROMPT
    logger.info("Loaded prompt template from page %s (%d chars)", prompt_page_id, len(text))
    return text
