import asyncio
import itertools
from typing import Any, Optional, Union

import pytest

from shortform.core import get_settings
from shortform.providers import GenerationProvider, NotionServiceError

SOURCE_ID = "1f2e3d4c-5b6a-4978-8a9b-0c1d2e3f4a5b"
SOURCE_DB = "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"
DEST_DB = "dest-db"
LINK = "https://example.com/s"


class FakeGenerationProvider(GenerationProvider):
    """Returns queued responses in order; an Exception in the queue is raised instead."""

    model = "fake-model"

    def __init__(self, responses: list[Union[str, Exception]]):
        self.responses = list(responses)
        self.calls: list[tuple[str, int]] = []

    async def generate(self, prompt: str, max_output_tokens: int = 4000) -> str:
        self.calls.append((prompt, max_output_tokens))
        await asyncio.sleep(0)
        if not self.responses:
            raise AssertionError("FakeGenerationProvider ran out of responses")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class FakeWorkspace:
    """In-memory stand-in for NotionWorkspace."""

    def __init__(
        self,
        pages: Optional[dict[str, dict]] = None,
        blocks: Optional[dict[str, list[dict]]] = None,
    ):
        self.pages = pages or {}
        self.blocks = blocks or {}
        self.created: list[dict[str, Any]] = []
        self.queries: list[tuple[str, Optional[dict]]] = []
        # Titles whose create_page call should fail
        self.reject_titles: set[str] = set()
        self._ids = itertools.count(1)

    async def retrieve_page(self, page_id: str) -> dict:
        if page_id not in self.pages:
            raise NotionServiceError("Could not find page", status_code=404, code="object_not_found")
        return self.pages[page_id]

    async def list_block_children(self, block_id: str, page_size: int = 100) -> list[dict]:
        if block_id not in self.blocks:
            raise NotionServiceError("Could not find block", status_code=404, code="object_not_found")
        return self.blocks[block_id]

    async def query_database(self, database_id: str, filter: Optional[dict] = None, page_size: int = 100) -> list[dict]:
        self.queries.append((database_id, filter))
        rows = [p for p in self.created if p["parent"] == database_id]
        if filter and "relation" in filter:
            wanted = filter["relation"]["contains"]
            rows = [
                p for p in rows
                if any(r["id"] == wanted for r in p["properties"][filter["property"]]["relation"])
            ]
        return rows[:page_size]

    async def create_page(self, parent_database_id: str, properties: dict, children: list[dict]) -> dict:
        title = next(
            v["title"][0]["text"]["content"] for v in properties.values() if "title" in v
        )
        if any(title.startswith(t) for t in self.reject_titles):
            raise NotionServiceError("body failed validation", status_code=400, code="validation_error")
        page = {
            "id": f"page-{next(self._ids)}",
            "parent": parent_database_id,
            "title": title,
            "properties": properties,
            "children": children,
        }
        self.created.append(page)
        return page


def rich(kind: str, text: str) -> dict:
    return {"type": kind, kind: {"rich_text": [{"plain_text": text}]}}


def concept_markdown(number: int, title: str, posts: list[str], cta: str) -> str:
    if len(posts) == 1:
        main = posts[0]
    else:
        main = "\n".join(f"Post {i}: {p}" for i, p in enumerate(posts, start=1))
    return (
        f"CONCEPT #{number}: {title}\n\n"
        f"Main Content:\n{main}\n\n"
        f"Single Aha Moment:\nAha for {title}\n\n"
        "What-Why-Where Check:\n"
        f"✅ WHAT: what of {title}\n"
        f"✅ WHY: why of {title}\n"
        f"✅ WHERE: where of {title}\n\n"
        f"Call To Action:\n{cta}\n\n"
        "Validation:\nMeets all principles\n\n---\n"
    )


def three_concepts_markdown() -> str:
    return "Here are your concepts.\n\n" + "".join([
        concept_markdown(1, "Time blocking", ["Block your calendar before others do."], "Read the full breakdown [LINK]"),
        concept_markdown(2, "Energy over hours", ["Schedule deep work at peak energy.", "Meetings go after lunch."], "Get the system here: https://old.example.org/x"),
        concept_markdown(3, "Weekly review", ["Thirty minutes every Friday saves hours."], "Join the newsletter."),
    ])


def time_management_source() -> str:
    paragraph = (
        "Time management is not about squeezing more tasks into a day. It is about deciding "
        "which few tasks deserve your best hours and protecting those hours from everything else. "
        "Most people plan their day around meetings, then try to fit real work into the gaps. "
    )
    text = ""
    while len(text) < 2500:
        text += paragraph + "\n\n"
    return text[:2500]


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def workspace() -> FakeWorkspace:
    return FakeWorkspace(
        pages={SOURCE_ID: {"id": SOURCE_ID, "parent": {"type": "database_id", "database_id": SOURCE_DB}}},
        blocks={
            SOURCE_ID: [
                rich("heading_1", "Time management"),
                rich("paragraph", time_management_source()),
            ],
        },
    )
