from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PersistedPage(BaseModel):
    """One destination page written for a concept (or its fallback error page)."""

    id: str
    title: str
    concept_number: int
    blocks_count: int = 0
    error: bool = False


class AutomationResult(BaseModel):
    """Outcome of one source-document run."""

    status: Literal["success", "skipped"]
    source_id: str
    reason: Optional[str] = None
    mode: Optional[str] = None
    content_length: int = 0
    concepts_generated: int = 0
    pages_created: int = 0
    pages: list[PersistedPage] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)
