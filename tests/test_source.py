import asyncio

import pytest
from conftest import SOURCE_DB, SOURCE_ID, FakeWorkspace, rich

from shortform.prompts import DEFAULT_CONCEPT_PROMPT
from shortform.providers import NotionServiceError
from shortform.services.generation.errors import SourceDocumentError
from shortform.services.generation.source import (
    flatten_segments,
    load_prompt_template,
    read_source_text,
    verify_source_page,
)


def test_flatten_segments_markers():
    blocks = [
        rich("heading_1", "Title"),
        rich("paragraph", "Intro paragraph."),
        rich("heading_2", "Section"),
        rich("bulleted_list_item", "first"),
        rich("numbered_list_item", "second"),
        rich("quote", "Quoted"),
        rich("heading_3", "Sub"),
        rich("code", "x = 1"),
        rich("paragraph", ""),
        {"type": "image", "image": {}},
    ]
    assert flatten_segments(blocks) == (
        "# Title\n\nIntro paragraph.\n\n## Section\n\n• first\n1. second\n> Quoted\n\n### Sub\n\n```\nx = 1\n```"
    )


def test_flatten_concatenates_runs():
    block = {"type": "paragraph", "paragraph": {"rich_text": [{"plain_text": "Hello, "}, {"plain_text": "world"}]}}
    assert flatten_segments([block]) == "Hello, world"


def test_read_source_text_empty_page():
    ws = FakeWorkspace(blocks={"p": [rich("paragraph", "")]})
    with pytest.raises(SourceDocumentError):
        asyncio.run(read_source_text(ws, "p"))


def test_verify_source_page(workspace):
    assert asyncio.run(verify_source_page(workspace, SOURCE_ID, SOURCE_DB.replace("-", "").upper()))
    assert not asyncio.run(verify_source_page(workspace, SOURCE_ID, "some-other-db"))
    assert asyncio.run(verify_source_page(workspace, SOURCE_ID, None))


def test_verify_source_page_not_shared(workspace):
    with pytest.raises(SourceDocumentError, match="not shared"):
        asyncio.run(verify_source_page(workspace, "missing-page", SOURCE_DB))


def test_load_prompt_template_fallbacks(workspace):
    assert asyncio.run(load_prompt_template(workspace, None)) == DEFAULT_CONCEPT_PROMPT
    assert asyncio.run(load_prompt_template(workspace, "missing-page")) == DEFAULT_CONCEPT_PROMPT
    workspace.blocks["empty"] = []
    assert asyncio.run(load_prompt_template(workspace, "empty")) == DEFAULT_CONCEPT_PROMPT


def test_load_prompt_template_from_page(workspace):
    workspace.blocks["prompt"] = [rich("heading_2", "Style"), rich("paragraph", "Be concise.")]
    assert asyncio.run(load_prompt_template(workspace, "prompt")) == "## Style\n\nBe concise."


def test_other_workspace_errors_propagate(workspace):
    async def broken(page_id):
        raise NotionServiceError("server error", status_code=502)

    workspace.retrieve_page = broken
    with pytest.raises(NotionServiceError):
        asyncio.run(verify_source_page(workspace, SOURCE_ID, SOURCE_DB))
