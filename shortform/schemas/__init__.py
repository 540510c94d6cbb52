"""Pydantic models shared by the pipeline and the HTTP layer."""

from shortform.schemas.concepts import (
    NOT_SPECIFIED,
    ConceptRecord,
    GenerationBatch,
    StageResult,
    WhatWhyWhere,
)
from shortform.schemas.automation import AutomationResult, PersistedPage
from shortform.schemas.webhook import HealthResponse, WebhookAck

__all__ = [
    "NOT_SPECIFIED",
    "ConceptRecord",
    "GenerationBatch",
    "StageResult",
    "WhatWhyWhere",
    "AutomationResult",
    "PersistedPage",
    "HealthResponse",
    "WebhookAck",
]
