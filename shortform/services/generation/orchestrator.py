"""
Generation orchestrator: source text -> GenerationBatch.

Single-pass: one call with the composed prompt, output handed to the concept
section parser (markdown) or the extractor (json).

Multi-pass: Analyze -> Draft -> Assess -> (Refine) -> EnhanceCTA -> FinalValidate.
Analyze, Assess and EnhanceCTA substitute a local default when their output does
not parse; Draft and Refine failures abort multi-pass and the whole run is
repeated in single-pass mode against the original source text.

Each stage is attempted exactly once; there are no automatic retries.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from shortform.prompts import (
    DEFAULT_CONCEPT_PROMPT,
    PROMPT_ANALYZE,
    PROMPT_ASSESS,
    PROMPT_DRAFT,
    PROMPT_ENHANCE_CTA,
    PROMPT_REFINE,
    PROMPT_SINGLE_PASS_JSON,
    PROMPT_SINGLE_PASS_MARKDOWN,
    fill_prompt,
)
from shortform.providers import GenerationProvider, GenerationServiceError
from shortform.schemas import ConceptRecord, GenerationBatch, StageResult

from .concept_parser import concepts_from_payload, parse_concept_sections, split_concept_sections
from .errors import ExtractionFailure, PipelineError, PipelineStage, UpstreamGenerationFailure
from .extractor import extract
from .validator import normalize

logger = logging.getLogger(__name__)

MAX_TOKENS = {
    PipelineStage.ANALYZE: 1000,
    PipelineStage.DRAFT: 4000,
    PipelineStage.ASSESS: 2000,
    PipelineStage.REFINE: 4000,
    PipelineStage.ENHANCE_CTA: 3000,
    PipelineStage.SINGLE_PASS: 8000,
}

SinglePassFormat = Literal["markdown", "json"]


# =============================================================================
# MODELS
# =============================================================================

class PromptConfig(BaseModel):
    """Per-run prompt inputs: methodology text and the CTA link token."""

    model_config = ConfigDict(frozen=True)

    link: str
    base_prompt: str = DEFAULT_CONCEPT_PROMPT


class GenerationRequest(BaseModel):
    """One stage's prompt, built fresh per call and never mutated."""

    model_config = ConfigDict(frozen=True)

    stage: PipelineStage
    template: str
    source_text: str = ""
    params: dict[str, str] = Field(default_factory=dict)

    @property
    def max_output_tokens(self) -> int:
        return MAX_TOKENS.get(self.stage, 4000)

    def render(self) -> str:
        return fill_prompt(self.template, source_text=self.source_text, **self.params)


class ContentAnalysis(BaseModel):
    """Analyze stage output. Defaults double as the stage-local fallback."""

    model_config = ConfigDict(populate_by_name=True)

    content_type: str = Field(default="Educational", alias="contentType")
    core_theme: str = Field(default="Business insights", alias="coreTheme")
    key_insights: list[str] = Field(default_factory=lambda: ["Key insights from content"], alias="keyInsights")
    audience_level: str = Field(default="Intermediate", alias="audienceLevel")
    emotional_tone: str = Field(default="Practical", alias="emotionalTone")
    recommended_templates: list[str] = Field(
        default_factory=lambda: ["System Breakdown", "Experience Share"],
        alias="recommendedTemplates",
    )
    complexity_notes: str = Field(default="", alias="complexityNotes")

    @field_validator("key_insights", "recommended_templates", mode="before")
    @classmethod
    def listify(cls, v: Any) -> list[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return [v] if v.strip() else []
        return [str(x) for x in v if str(x).strip()]

    @field_validator("content_type", "core_theme", "audience_level", "emotional_tone", "complexity_notes", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> str:
        return "" if v is None else str(v)

    def prompt_params(self) -> dict[str, str]:
        return {
            "content_type": self.content_type,
            "core_theme": self.core_theme,
            "audience_level": self.audience_level,
            "emotional_tone": self.emotional_tone,
            "recommended_templates": ", ".join(self.recommended_templates),
            "key_insights": "; ".join(self.key_insights),
        }


def _default_feedback() -> dict:
    return {
        "globalIssues": ["Unable to assess quality automatically"],
        "priorityFixes": ["Review all concepts manually"],
    }


class QualityAssessment(BaseModel):
    """Assess stage output. The default asks for one refinement round."""

    model_config = ConfigDict(populate_by_name=True)

    overall_quality: str = Field(default="Medium", alias="overallQuality")
    needs_refinement: bool = Field(default=True, alias="needsRefinement")
    feedback: dict = Field(default_factory=_default_feedback)

    @field_validator("needs_refinement", mode="before")
    @classmethod
    def parse_flag(cls, v: Any) -> bool:
        if isinstance(v, str):
            return v.strip().lower() in ("true", "yes", "1")
        return bool(v)


# =============================================================================
# HELPERS
# =============================================================================

def concepts_json(concepts: list[ConceptRecord]) -> str:
    return json.dumps(
        {"tweetConcepts": [c.to_prompt_dict() for c in concepts]},
        indent=2,
        ensure_ascii=False,
    )


def parse_single_pass_markdown(text: str) -> list[ConceptRecord]:
    """Concept sections first; a JSON payload if the model ignored the format; raw fallback last."""
    if not split_concept_sections(text):
        try:
            concepts = concepts_from_payload(extract(text))
        except ExtractionFailure:
            concepts = []
        if any(c.posts for c in concepts):
            logger.info("Single-pass markdown response carried JSON; parsed %d concepts", len(concepts))
            return concepts
    return parse_concept_sections(text)


def merge_ctas(previous: list[ConceptRecord], enhanced: list[ConceptRecord]) -> list[ConceptRecord]:
    """
    Apply EnhanceCTA output to the existing concepts by position.

    An enhanced item with posts replaces its concept; otherwise only a non-empty
    CTA is taken. Concepts with no enhanced counterpart, or whose counterpart is
    a parse-error sentinel, are kept unchanged. Extra enhanced items are ignored.
    """
    merged: list[ConceptRecord] = []
    for index, concept in enumerate(previous):
        update = enhanced[index] if index < len(enhanced) else None
        if update is None or update.parse_error:
            merged.append(concept)
        elif update.posts:
            merged.append(update.model_copy(update={"number": concept.number}))
        elif update.cta:
            merged.append(concept.model_copy(update={"cta": update.cta}))
        else:
            merged.append(concept)
    if len(enhanced) != len(previous):
        logger.warning("Stage enhance_cta returned %d concepts for %d; merged by position", len(enhanced), len(previous))
    return merged


# =============================================================================
# ORCHESTRATOR
# =============================================================================

class GenerationOrchestrator:
    def __init__(
        self,
        provider: GenerationProvider,
        *,
        multi_pass: bool = False,
        single_pass_format: SinglePassFormat = "markdown",
    ):
        self.provider = provider
        self.multi_pass = multi_pass
        self.single_pass_format = single_pass_format

    async def run(self, source_text: str, prompt_config: PromptConfig) -> GenerationBatch:
        """
        Produce a normalized batch for one source document.

        Raises:
            UpstreamGenerationFailure: the generative service failed, or multi-pass
                and its single-pass fallback both failed.
            ExtractionFailure: single-pass json output had no parseable structure.
        """
        if not self.multi_pass:
            return await self._run_single_pass(source_text, prompt_config)

        try:
            return await self._run_multi_pass(source_text, prompt_config)
        except Exception as e:
            logger.warning("Multi-pass generation failed (%s); falling back to single-pass", e)

        try:
            batch = await self._run_single_pass(source_text, prompt_config)
        except (PipelineError, ExtractionFailure) as e:
            raise UpstreamGenerationFailure(
                PipelineStage.SINGLE_PASS,
                f"Multi-pass and single-pass fallback both failed: {e}",
                cause=e,
            ) from e
        batch.mode = "single_pass_fallback"
        return batch

    # -------------------------------------------------------------------------
    # Calls
    # -------------------------------------------------------------------------

    async def _call(self, request: GenerationRequest, trace: list[StageResult]) -> StageResult:
        started = time.perf_counter()
        try:
            text = await self.provider.generate(request.render(), max_output_tokens=request.max_output_tokens)
        except GenerationServiceError as e:
            trace.append(StageResult(
                stage=request.stage.value,
                elapsed_ms=_elapsed_ms(started),
                ok=False,
                error=str(e),
            ))
            raise UpstreamGenerationFailure(request.stage, f"Generation service failed: {e}", cause=e) from e
        result = StageResult(stage=request.stage.value, text=text, elapsed_ms=_elapsed_ms(started))
        trace.append(result)
        logger.info("Stage %s completed in %.0f ms (%d chars)", request.stage.value, result.elapsed_ms, len(text))
        return result

    def _parse_or_default(self, stage: PipelineStage, result: StageResult) -> Optional[Any]:
        try:
            return extract(result.text)
        except ExtractionFailure as e:
            logger.warning("Stage %s output unparseable; using default (preview=%r)", stage.value, e.preview)
            result.ok = False
            result.error = e.message
            return None

    def _final_validate(self, batch: GenerationBatch, link: str) -> GenerationBatch:
        started = time.perf_counter()
        before = len(batch.concepts)
        normalize(batch, link)
        batch.stages.append(StageResult(
            stage=PipelineStage.FINAL_VALIDATE.value,
            elapsed_ms=_elapsed_ms(started),
        ))
        logger.info("Final validation kept %d/%d concepts", len(batch.concepts), before)
        return batch

    # -------------------------------------------------------------------------
    # Single pass
    # -------------------------------------------------------------------------

    async def _run_single_pass(self, source_text: str, config: PromptConfig) -> GenerationBatch:
        trace: list[StageResult] = []
        template = PROMPT_SINGLE_PASS_JSON if self.single_pass_format == "json" else PROMPT_SINGLE_PASS_MARKDOWN
        request = GenerationRequest(
            stage=PipelineStage.SINGLE_PASS,
            template=template,
            source_text=source_text,
            params={"base_prompt": config.base_prompt, "link": config.link},
        )
        result = await self._call(request, trace)
        if self.single_pass_format == "json":
            concepts = concepts_from_payload(extract(result.text))
        else:
            concepts = parse_single_pass_markdown(result.text)
        batch = GenerationBatch(concepts=concepts, mode="single_pass", stages=trace)
        return self._final_validate(batch, config.link)

    # -------------------------------------------------------------------------
    # Multi pass
    # -------------------------------------------------------------------------

    async def _run_multi_pass(self, source_text: str, config: PromptConfig) -> GenerationBatch:
        trace: list[StageResult] = []
        analysis = await self._analyze(source_text, trace)
        concepts = await self._draft(source_text, config, analysis, trace)
        assessment = await self._assess(concepts, trace)
        if assessment.needs_refinement:
            concepts = await self._refine(concepts, assessment, trace)
        else:
            logger.info("Assessment quality %s; skipping refinement", assessment.overall_quality)
        concepts = await self._enhance_ctas(concepts, config.link, analysis, trace)
        batch = GenerationBatch(concepts=concepts, mode="multi_pass", stages=trace)
        return self._final_validate(batch, config.link)

    async def _analyze(self, source_text: str, trace: list[StageResult]) -> ContentAnalysis:
        result = await self._call(
            GenerationRequest(stage=PipelineStage.ANALYZE, template=PROMPT_ANALYZE, source_text=source_text),
            trace,
        )
        data = self._parse_or_default(PipelineStage.ANALYZE, result)
        if isinstance(data, dict):
            try:
                return ContentAnalysis.model_validate(data)
            except ValidationError as e:
                logger.warning("Stage analyze output invalid; using default: %s", e)
        return ContentAnalysis()

    async def _draft(
        self,
        source_text: str,
        config: PromptConfig,
        analysis: ContentAnalysis,
        trace: list[StageResult],
    ) -> list[ConceptRecord]:
        result = await self._call(
            GenerationRequest(
                stage=PipelineStage.DRAFT,
                template=PROMPT_DRAFT,
                source_text=source_text,
                params={"base_prompt": config.base_prompt, **analysis.prompt_params()},
            ),
            trace,
        )
        return self._concepts_or_raise(PipelineStage.DRAFT, result)

    async def _assess(self, concepts: list[ConceptRecord], trace: list[StageResult]) -> QualityAssessment:
        result = await self._call(
            GenerationRequest(
                stage=PipelineStage.ASSESS,
                template=PROMPT_ASSESS,
                params={"concepts_json": concepts_json(concepts)},
            ),
            trace,
        )
        data = self._parse_or_default(PipelineStage.ASSESS, result)
        if isinstance(data, dict):
            try:
                return QualityAssessment.model_validate(data)
            except ValidationError as e:
                logger.warning("Stage assess output invalid; using default: %s", e)
        return QualityAssessment()

    async def _refine(
        self,
        concepts: list[ConceptRecord],
        assessment: QualityAssessment,
        trace: list[StageResult],
    ) -> list[ConceptRecord]:
        result = await self._call(
            GenerationRequest(
                stage=PipelineStage.REFINE,
                template=PROMPT_REFINE,
                params={
                    "concepts_json": concepts_json(concepts),
                    "feedback_json": json.dumps(assessment.feedback, indent=2, ensure_ascii=False),
                },
            ),
            trace,
        )
        return self._concepts_or_raise(PipelineStage.REFINE, result)

    async def _enhance_ctas(
        self,
        concepts: list[ConceptRecord],
        link: str,
        analysis: ContentAnalysis,
        trace: list[StageResult],
    ) -> list[ConceptRecord]:
        result = await self._call(
            GenerationRequest(
                stage=PipelineStage.ENHANCE_CTA,
                template=PROMPT_ENHANCE_CTA,
                params={"concepts_json": concepts_json(concepts), "link": link, **analysis.prompt_params()},
            ),
            trace,
        )
        data = self._parse_or_default(PipelineStage.ENHANCE_CTA, result)
        if data is None:
            return concepts
        enhanced = concepts_from_payload(data)
        if not enhanced:
            logger.warning("Stage enhance_cta returned no concepts; keeping previous CTAs")
            return concepts
        return merge_ctas(concepts, enhanced)

    def _concepts_or_raise(self, stage: PipelineStage, result: StageResult) -> list[ConceptRecord]:
        try:
            concepts = concepts_from_payload(extract(result.text))
        except ExtractionFailure as e:
            result.ok = False
            result.error = e.message
            raise PipelineError(stage, f"Could not parse concepts: {e.message}", cause=e) from e
        if not any(c.posts for c in concepts):
            result.ok = False
            result.error = "no concept with post content"
            raise PipelineError(stage, "Model returned no concepts with post content")
        return concepts


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 1)
