"""Pipeline stage and error types for concept generation and persistence."""

from enum import Enum
from typing import Optional

from shortform.core.constants import EXTRACTION_PREVIEW_CHARS


class PipelineStage(str, Enum):
    """Pipeline stage identifiers for error reporting and stage traces."""
    ANALYZE = "analyze"
    DRAFT = "draft"
    ASSESS = "assess"
    REFINE = "refine"
    ENHANCE_CTA = "enhance_cta"
    FINAL_VALIDATE = "final_validate"
    SINGLE_PASS = "single_pass"
    PERSIST = "persist"


class PipelineError(Exception):
    """Pipeline error with stage context."""
    def __init__(self, stage: PipelineStage, message: str, cause: Optional[Exception] = None):
        self.stage = stage
        self.message = message
        self.cause = cause
        super().__init__(f"[{stage.value}] {message}")


class UpstreamGenerationFailure(PipelineError):
    """The generative service call failed (transport, quota) or the whole pipeline could not recover."""


class PersistenceFailure(PipelineError):
    """The workspace rejected a derived page."""
    def __init__(self, concept_number: int, message: str, cause: Optional[Exception] = None):
        self.concept_number = concept_number
        super().__init__(PipelineStage.PERSIST, f"concept {concept_number}: {message}", cause=cause)


class ExtractionFailure(Exception):
    """No extraction strategy produced structured data from the model text."""
    def __init__(self, text: str, message: str = "No valid JSON found in response"):
        self.preview = (text or "")[:EXTRACTION_PREVIEW_CHARS]
        self.message = message
        super().__init__(f"{message}: {self.preview!r}")


class SourceDocumentError(Exception):
    """The source document is missing, not shared with the integration, or empty."""
