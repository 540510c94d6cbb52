from conftest import concept_markdown, three_concepts_markdown

from shortform.schemas import NOT_SPECIFIED
from shortform.services.generation.concept_parser import (
    PARSE_ERROR_NOTE,
    concepts_from_payload,
    parse_concept_sections,
    split_posts,
)


def test_three_well_formed_sections():
    concepts = parse_concept_sections(three_concepts_markdown())
    assert [c.number for c in concepts] == [1, 2, 3]
    assert [c.title for c in concepts] == ["Time blocking", "Energy over hours", "Weekly review"]
    first = concepts[0]
    assert first.posts == ["Block your calendar before others do."]
    assert first.aha_moment == "Aha for Time blocking"
    assert first.what_why_where.what == "what of Time blocking"
    assert first.what_why_where.where == "where of Time blocking"
    assert first.cta == "Read the full breakdown [LINK]"
    assert first.quality_note == "Meets all principles"
    assert concepts[1].posts == ["Schedule deep work at peak energy.", "Meetings go after lunch."]


def test_malformed_middle_section_is_isolated():
    text = (
        concept_markdown(1, "One", ["First post"], "CTA one")
        + "CONCEPT #2: Broken\nJust some rambling with no labels at all.\n\n"
        + concept_markdown(3, "Three", ["Third post"], "CTA three")
    )
    concepts = parse_concept_sections(text)
    assert len(concepts) == 3
    assert not concepts[0].parse_error and concepts[0].posts == ["First post"]
    assert concepts[1].parse_error
    assert concepts[1].quality_note.startswith(PARSE_ERROR_NOTE)
    assert not concepts[2].parse_error and concepts[2].cta == "CTA three"


def test_missing_subsection_yields_empty_span():
    text = "CONCEPT #1: No aha\nMain Content:\nJust the post\n\nCall To Action:\nGo"
    (concept,) = parse_concept_sections(text)
    assert concept.posts == ["Just the post"]
    assert concept.aha_moment == ""
    assert concept.what_why_where.why == NOT_SPECIFIED
    assert concept.cta == "Go"


def test_no_headings_degrades_to_raw_concept():
    text = "The model ignored the format. " * 40
    concepts = parse_concept_sections(text)
    assert len(concepts) == 1
    assert concepts[0].posts == [text.strip()[:500]]


def test_empty_text_gives_no_concepts():
    assert parse_concept_sections("  \n") == []


def test_markdown_heading_decoration():
    text = "## **CONCEPT #1: Decorated**\n**Main Content:**\nPost body\n"
    (concept,) = parse_concept_sections(text)
    assert concept.title == "Decorated"
    assert concept.posts == ["Post body"]


def test_split_posts_without_markers():
    assert split_posts("One single post\nover two lines") == ["One single post\nover two lines"]


def test_payload_tweet_concepts_shape():
    payload = {
        "tweetConcepts": [
            {
                "concept": "Deep work",
                "strategy": "System Breakdown",
                "mainContent": {"posts": ["Post A", "Post B"], "characterCounts": ["999/500"]},
                "ahaMoment": "Focus compounds",
                "whatWhyWhere": {"what": "W", "why": "Y", "where": "H"},
                "cta": "Read more [LINK]",
            }
        ]
    }
    (concept,) = concepts_from_payload(payload)
    assert concept.number == 1
    assert concept.title == "Deep work"
    assert concept.posts == ["Post A", "Post B"]
    assert concept.aha_moment == "Focus compounds"
    assert concept.what_why_where.why == "Y"
    assert concept.strategy == "System Breakdown"


def test_payload_alternate_keys_and_bare_list():
    payload = [
        {"title": "One", "content": "Body one", "call_to_action": "Go", "single_aha_moment": "Aha"},
        {"name": "Two", "tweets": [{"text": "Body two"}], "callToAction": "Go two"},
    ]
    concepts = concepts_from_payload(payload)
    assert [c.title for c in concepts] == ["One", "Two"]
    assert concepts[0].posts == ["Body one"]
    assert concepts[0].aha_moment == "Aha"
    assert concepts[1].posts == ["Body two"]
    assert concepts[1].cta == "Go two"


def test_payload_single_object_and_non_object_items():
    (single,) = concepts_from_payload({"title": "Solo", "posts": ["Only post"]})
    assert single.title == "Solo"

    concepts = concepts_from_payload({"concepts": [{"title": "Fine", "posts": ["x"]}, "stray string"]})
    assert len(concepts) == 2
    assert concepts[1].parse_error
    assert concepts[1].number == 2


def test_payload_object_without_concept_fields_is_not_a_concept():
    assert concepts_from_payload({"error": "cannot comply"}) == []
    assert concepts_from_payload({"reason": "too short", "code": 3}) == []
    (cta_only,) = concepts_from_payload({"cta": "Read more"})
    assert cta_only.cta == "Read more"
