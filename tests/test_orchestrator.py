import asyncio
import json

import pytest
from conftest import LINK, FakeGenerationProvider, three_concepts_markdown, time_management_source

from shortform.providers import GenerationServiceError
from shortform.services.generation.errors import ExtractionFailure, PipelineStage, UpstreamGenerationFailure
from shortform.services.generation.orchestrator import GenerationOrchestrator, PromptConfig

CONFIG = PromptConfig(link=LINK, base_prompt="METHODOLOGY")

ANALYSIS = json.dumps({
    "contentType": "Framework",
    "coreTheme": "Protect your best hours",
    "keyInsights": ["Energy beats hours"],
    "audienceLevel": "Beginner",
    "emotionalTone": "Practical",
    "recommendedTemplates": ["System Breakdown"],
})


def _concepts_json(*ctas: str) -> str:
    return json.dumps({
        "tweetConcepts": [
            {
                "concept": f"Concept {i}",
                "mainContent": {"posts": [f"Post body {i}"]},
                "ahaMoment": f"Aha {i}",
                "whatWhyWhere": {"what": "w", "why": "y", "where": "h"},
                "cta": cta,
            }
            for i, cta in enumerate(ctas, start=1)
        ]
    })


def _run(orchestrator: GenerationOrchestrator, text: str = "Source text"):
    return asyncio.run(orchestrator.run(text, CONFIG))


def test_end_to_end_single_pass_markdown():
    source = time_management_source()
    assert len(source) == 2500
    provider = FakeGenerationProvider([three_concepts_markdown()])
    batch = _run(GenerationOrchestrator(provider), source)

    assert batch.mode == "single_pass"
    assert len(batch.concepts) == 3
    for concept in batch.concepts:
        assert concept.posts
        assert all(len(p) <= 500 for p in concept.posts)
        assert concept.cta.endswith(LINK)
    prompt, max_tokens = provider.calls[0]
    assert source in prompt and LINK in prompt and "METHODOLOGY" in prompt
    assert max_tokens == 8000
    assert [s.stage for s in batch.stages] == ["single_pass", "final_validate"]


def test_single_pass_json_format():
    provider = FakeGenerationProvider(["```json\n" + _concepts_json("More [LINK]", "Read") + "\n```"])
    batch = _run(GenerationOrchestrator(provider, single_pass_format="json"))
    assert [c.cta for c in batch.concepts] == [f"More {LINK}", f"Read: {LINK}"]


def test_single_pass_json_unparseable_is_fatal():
    provider = FakeGenerationProvider(["Sorry, I can only answer in prose."])
    with pytest.raises(ExtractionFailure):
        _run(GenerationOrchestrator(provider, single_pass_format="json"))


def test_single_pass_markdown_accepts_json_response():
    provider = FakeGenerationProvider([_concepts_json("Go")])
    batch = _run(GenerationOrchestrator(provider))
    assert batch.concepts[0].title == "Concept 1"
    assert batch.concepts[0].posts == ["Post body 1"]


def test_single_pass_upstream_failure():
    provider = FakeGenerationProvider([GenerationServiceError("quota")])
    with pytest.raises(UpstreamGenerationFailure) as exc:
        _run(GenerationOrchestrator(provider))
    assert exc.value.stage == PipelineStage.SINGLE_PASS


def test_multi_pass_without_refinement():
    provider = FakeGenerationProvider([
        ANALYSIS,
        _concepts_json("draft cta", "draft cta"),
        json.dumps({"overallQuality": "High", "needsRefinement": False}),
        _concepts_json(f"Enhanced one {LINK}", "Enhanced two [LINK]"),
    ])
    batch = _run(GenerationOrchestrator(provider, multi_pass=True))

    assert batch.mode == "multi_pass"
    assert [s.stage for s in batch.stages] == ["analyze", "draft", "assess", "enhance_cta", "final_validate"]
    assert [c.cta for c in batch.concepts] == [f"Enhanced one {LINK}", f"Enhanced two {LINK}"]
    draft_prompt = provider.calls[1][0]
    assert "Protect your best hours" in draft_prompt
    assert [tokens for _, tokens in provider.calls] == [1000, 4000, 2000, 3000]


def test_multi_pass_refines_once_and_uses_stage_defaults():
    provider = FakeGenerationProvider([
        "I could not classify this content.",
        _concepts_json("draft"),
        "Looks fine to me!",
        _concepts_json("refined cta"),
        "no json here either",
    ])
    batch = _run(GenerationOrchestrator(provider, multi_pass=True))

    assert batch.mode == "multi_pass"
    assert [s.stage for s in batch.stages] == ["analyze", "draft", "assess", "refine", "enhance_cta", "final_validate"]
    assert [s.ok for s in batch.stages[:5]] == [False, True, False, True, False]
    # default analysis feeds the draft prompt
    assert "Educational" in provider.calls[1][0]
    # enhance_cta default keeps the refined concepts; the validator still places the link
    assert batch.concepts[0].cta == f"refined cta: {LINK}"


def test_multi_pass_draft_failure_falls_back_to_single_pass():
    provider = FakeGenerationProvider([
        ANALYSIS,
        "Here are some ideas but no structure.",
        three_concepts_markdown(),
    ])
    batch = _run(GenerationOrchestrator(provider, multi_pass=True))

    assert batch.mode == "single_pass_fallback"
    assert len(batch.concepts) == 3
    # partial multi-pass state is discarded
    assert [s.stage for s in batch.stages] == ["single_pass", "final_validate"]


def test_multi_pass_and_fallback_both_fail():
    provider = FakeGenerationProvider([
        GenerationServiceError("connection reset"),
        GenerationServiceError("connection reset"),
    ])
    with pytest.raises(UpstreamGenerationFailure) as exc:
        _run(GenerationOrchestrator(provider, multi_pass=True))
    assert exc.value.stage == PipelineStage.SINGLE_PASS
    assert len(provider.calls) == 2


def test_single_pass_markdown_non_concept_json_degrades_to_raw_response():
    response = 'I could not produce concepts for this one. Details: {"reason": "too short"}'
    provider = FakeGenerationProvider([response])
    batch = _run(GenerationOrchestrator(provider))

    assert len(batch.concepts) == 1
    assert batch.concepts[0].title == "Raw Model Response"
    assert batch.concepts[0].posts == [response]


def test_multi_pass_draft_without_concepts_falls_back_to_single_pass():
    provider = FakeGenerationProvider([
        ANALYSIS,
        json.dumps({"error": "cannot comply"}),
        three_concepts_markdown(),
    ])
    batch = _run(GenerationOrchestrator(provider, multi_pass=True))

    assert batch.mode == "single_pass_fallback"
    assert len(batch.concepts) == 3
    assert len(provider.calls) == 3


def test_multi_pass_refine_failure_falls_back_to_single_pass():
    provider = FakeGenerationProvider([
        ANALYSIS,
        _concepts_json("draft one", "draft two"),
        json.dumps({"overallQuality": "Low", "needsRefinement": True, "feedback": {"globalIssues": ["weak hooks"]}}),
        "I tried to refine these but ran out of room.",
        three_concepts_markdown(),
    ])
    batch = _run(GenerationOrchestrator(provider, multi_pass=True))

    assert batch.mode == "single_pass_fallback"
    assert [s.stage for s in batch.stages] == ["single_pass", "final_validate"]
    assert [c.title for c in batch.concepts] == ["Time blocking", "Energy over hours", "Weekly review"]
    assert "weak hooks" in provider.calls[3][0]


def test_enhance_cta_only_items_keep_existing_posts():
    provider = FakeGenerationProvider([
        ANALYSIS,
        _concepts_json("draft one", "draft two"),
        json.dumps({"overallQuality": "High", "needsRefinement": False}),
        json.dumps({"tweetConcepts": [{"cta": "Sharper bridge [LINK]"}]}),
    ])
    batch = _run(GenerationOrchestrator(provider, multi_pass=True))

    assert batch.mode == "multi_pass"
    assert [c.posts for c in batch.concepts] == [["Post body 1"], ["Post body 2"]]
    assert [c.title for c in batch.concepts] == ["Concept 1", "Concept 2"]
    # first CTA enhanced; second had no counterpart and keeps the draft CTA
    assert [c.cta for c in batch.concepts] == [f"Sharper bridge {LINK}", f"draft two: {LINK}"]
