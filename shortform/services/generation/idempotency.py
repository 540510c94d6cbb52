"""Skip sources that already have derived pages in the destination database."""

import logging

from shortform.providers import NotionWorkspace

logger = logging.getLogger(__name__)


class IdempotencyGuard:
    """
    Pure read: asks the destination database whether any page's relation
    property already references the source id.
    """

    def __init__(self, workspace: NotionWorkspace, database_id: str, relation_property: str = "E-mails"):
        self.workspace = workspace
        self.database_id = database_id
        self.relation_property = relation_property

    def relation_filter(self, source_id: str) -> dict:
        return {"property": self.relation_property, "relation": {"contains": source_id}}

    async def should_skip(self, source_id: str) -> bool:
        """
        True when derived pages already exist for ``source_id``.

        Raises:
            NotionServiceError: the query failed. Not treated as "not processed",
                since that would risk a duplicate batch.
        """
        rows = await self.workspace.query_database(
            self.database_id,
            filter=self.relation_filter(source_id),
            page_size=1,
        )
        if rows:
            logger.info("Source %s already has derived pages; skipping", source_id)
            return True
        return False
