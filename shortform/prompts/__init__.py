"""
Prompt templates for concept generation.

Pipeline order (multi-pass):
  1. ANALYZE     : source text → content type / theme / insights
  2. DRAFT       : analysis + source → concepts JSON
  3. ASSESS      : concepts → quality feedback, needsRefinement
  4. REFINE      : concepts + feedback → concepts JSON (only if needed)
  5. ENHANCE_CTA : concepts + link + analysis → concepts JSON
"""

from .concepts import (
    CONCEPTS_SCHEMA,
    DEFAULT_CONCEPT_PROMPT,
    JSON_ONLY_RULE,
    PROMPT_ANALYZE,
    PROMPT_ASSESS,
    PROMPT_DRAFT,
    PROMPT_ENHANCE_CTA,
    PROMPT_REFINE,
    PROMPT_SINGLE_PASS_JSON,
    PROMPT_SINGLE_PASS_MARKDOWN,
    fill_prompt,
)

__all__ = [
    "CONCEPTS_SCHEMA",
    "DEFAULT_CONCEPT_PROMPT",
    "JSON_ONLY_RULE",
    "PROMPT_ANALYZE",
    "PROMPT_ASSESS",
    "PROMPT_DRAFT",
    "PROMPT_ENHANCE_CTA",
    "PROMPT_REFINE",
    "PROMPT_SINGLE_PASS_JSON",
    "PROMPT_SINGLE_PASS_MARKDOWN",
    "fill_prompt",
]
