"""
One source document end to end: verify -> guard -> read -> prompt -> generate -> persist.

The guard check and the page writes for one source id run under an in-process
per-source lock, so concurrent deliveries of the same id inside one worker are
serialized and the second one sees the first one's pages. Separate worker
processes are not coordinated.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from shortform.core import get_settings
from shortform.providers import (
    NotionConfigError,
    NotionWorkspace,
    get_generation_provider,
    get_notion_workspace,
)
from shortform.schemas import AutomationResult

from .idempotency import IdempotencyGuard
from .orchestrator import GenerationOrchestrator, PromptConfig
from .persistence import ConceptPageWriter
from .source import load_prompt_template, read_source_text, verify_source_page

logger = logging.getLogger(__name__)

SKIP_NOT_IN_SOURCE_DATABASE = "Page not in source database"
SKIP_ALREADY_PROCESSED = "Source already processed"


class _SourceLocks:
    """asyncio.Lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    def __contains__(self, key: str) -> bool:
        return key in self._locks

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


_source_locks = _SourceLocks()


def _lock_key(source_id: str) -> str:
    return source_id.replace("-", "").lower()


class ContentAutomation:
    def __init__(
        self,
        workspace: NotionWorkspace,
        orchestrator: GenerationOrchestrator,
        *,
        destination_database_id: str,
        link: str,
        source_database_id: Optional[str] = None,
        prompt_page_id: Optional[str] = None,
        relation_property: str = "E-mails",
        title_property: str = "Title",
        locks: Optional[_SourceLocks] = None,
    ):
        self.workspace = workspace
        self.orchestrator = orchestrator
        self.link = link
        self.source_database_id = source_database_id
        self.prompt_page_id = prompt_page_id
        self.guard = IdempotencyGuard(workspace, destination_database_id, relation_property)
        self.writer = ConceptPageWriter(
            workspace,
            destination_database_id,
            title_property=title_property,
            relation_property=relation_property,
        )
        self._locks = locks if locks is not None else _source_locks

    async def process(self, source_id: str) -> AutomationResult:
        """
        Raises:
            SourceDocumentError: the source page is unshared or has no text.
            UpstreamGenerationFailure: generation failed for the whole run.
            ExtractionFailure: single-pass json output could not be parsed.
            NotionServiceError: the workspace failed outside page creation.
        """
        logger.info("Starting automation for source %s", source_id)
        if not await verify_source_page(self.workspace, source_id, self.source_database_id):
            return AutomationResult(status="skipped", source_id=source_id, reason=SKIP_NOT_IN_SOURCE_DATABASE)

        async with self._locks.hold(_lock_key(source_id)):
            if await self.guard.should_skip(source_id):
                return AutomationResult(status="skipped", source_id=source_id, reason=SKIP_ALREADY_PROCESSED)

            source_text = await read_source_text(self.workspace, source_id)
            base_prompt = await load_prompt_template(self.workspace, self.prompt_page_id)
            batch = await self.orchestrator.run(source_text, PromptConfig(link=self.link, base_prompt=base_prompt))
            pages = await self.writer.write_batch(batch, source_id)

        result = AutomationResult(
            status="success",
            source_id=source_id,
            mode=batch.mode,
            content_length=len(source_text),
            concepts_generated=len(batch.concepts),
            pages_created=len(pages),
            pages=pages,
        )
        logger.info(
            "Automation complete for %s: mode=%s concepts=%d pages=%d",
            source_id, result.mode, result.concepts_generated, result.pages_created,
        )
        return result


def get_automation() -> ContentAutomation:
    """Build the automation from settings. Raises NotionConfigError / GenerationConfigError."""
    s = get_settings()
    if not s.shortform_database_id:
        raise NotionConfigError("Destination database not configured. Set SHORTFORM_DATABASE_ID.")
    orchestrator = GenerationOrchestrator(
        get_generation_provider(),
        multi_pass=s.multi_pass_enabled,
        single_pass_format=s.single_pass_format,
    )
    return ContentAutomation(
        get_notion_workspace(),
        orchestrator,
        destination_database_id=s.shortform_database_id,
        link=s.newsletter_link,
        source_database_id=s.emails_database_id,
        prompt_page_id=s.prompt_page_id,
        relation_property=s.source_relation_property,
        title_property=s.title_property,
    )
