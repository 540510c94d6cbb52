"""Concept generation pipeline: orchestration, extraction, parsing, validation, persistence."""

from .automation import ContentAutomation, get_automation
from .concept_parser import concepts_from_payload, parse_concept_sections
from .errors import (
    ExtractionFailure,
    PersistenceFailure,
    PipelineError,
    PipelineStage,
    SourceDocumentError,
    UpstreamGenerationFailure,
)
from .extractor import extract
from .idempotency import IdempotencyGuard
from .orchestrator import GenerationOrchestrator, PromptConfig
from .persistence import ConceptPageWriter
from .source import flatten_segments, load_prompt_template, read_source_text, verify_source_page
from .validator import normalize

__all__ = [
    "ContentAutomation",
    "get_automation",
    "concepts_from_payload",
    "parse_concept_sections",
    "ExtractionFailure",
    "PersistenceFailure",
    "PipelineError",
    "PipelineStage",
    "SourceDocumentError",
    "UpstreamGenerationFailure",
    "extract",
    "IdempotencyGuard",
    "GenerationOrchestrator",
    "PromptConfig",
    "ConceptPageWriter",
    "flatten_segments",
    "load_prompt_template",
    "read_source_text",
    "verify_source_page",
    "normalize",
]
