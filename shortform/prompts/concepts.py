"""
Concept generation prompts.

Designed to take one long-form source document (a newsletter email) and produce
3-5 short-form post concepts, each with a single aha moment, a complete
What-Why-Where cycle, and a CTA ending in the newsletter link.

Single-pass mode sends DEFAULT_CONCEPT_PROMPT (or the prompt page content) wrapped
by PROMPT_SINGLE_PASS_MARKDOWN or PROMPT_SINGLE_PASS_JSON. Multi-pass mode runs
ANALYZE -> DRAFT -> ASSESS -> (REFINE) -> ENHANCE_CTA, all JSON-only.

Placeholders (double-brace, replace before sending to the model):
  - {{BASE_PROMPT}}    : methodology / style guide text
  - {{SOURCE_TEXT}}    : flattened source document
  - {{LINK}}           : CTA link token
  - {{CONCEPTS_JSON}}  : current concepts in CONCEPTS_SCHEMA shape
  - {{FEEDBACK_JSON}}  : Assess stage feedback
  - {{CONTENT_TYPE}}, {{CORE_THEME}}, {{AUDIENCE_LEVEL}}, {{EMOTIONAL_TONE}},
    {{RECOMMENDED_TEMPLATES}}, {{KEY_INSIGHTS}}: analysis fields
"""

import re

_PLACEHOLDER_RE = re.compile(r"\{\{([A-Z][A-Z0-9_]*)\}\}")

JSON_ONLY_RULE = (
    "CRITICAL: Respond with ONLY valid JSON. No explanations, no markdown formatting, "
    "no text before or after the JSON."
)

CONCEPTS_SCHEMA = """{
  "tweetConcepts": [
    {
      "concept": "",
      "strategy": "",
      "mainContent": {
        "posts": [""],
        "characterCounts": [""]
      },
      "ahaMoment": "",
      "whatWhyWhere": {"what": "", "why": "", "where": ""},
      "cta": ""
    }
  ]
}"""

# -----------------------------------------------------------------------------
# Default methodology (used when no prompt page is configured or readable)
# -----------------------------------------------------------------------------

DEFAULT_CONCEPT_PROMPT = """You are a content extraction specialist. Transform long-form content into high-quality short-form posts following this methodology:

PHASE 1: Content Analysis
- Identify core message/theme
- Extract key insights and arguments
- Find specific examples/evidence
- Note frameworks/processes
- Capture metrics/numbers
- Identify unique perspectives

PHASE 2: Post Development
For EACH concept, ensure:

SINGLE AHA MOMENT: One clear insight/realization that everything builds toward

WHAT-WHY-WHERE CYCLES (MANDATORY):
- WHAT: Define/explain the concept clearly (no jargon without plain language)
- WHY: Connect to audience pain/goals, show mechanism/psychology
- WHERE: Give clear direction on what to focus on or do

CORE PRINCIPLES:
- No jargon without explaining in plain language
- Explain mechanisms, don't just name them
- Use actual concepts from source content
- Nothing should require visuals to understand
- No formulaic markers ("Result:", "Key takeaway:", etc.)
- Every post stays under 500 characters

Create 3-5 concepts following this structure. For each concept, provide:

CONCEPT #X: [Brief Description]

Main Content:
Post 1: [post text]
Post 2: [optional follow-up post text]

Single Aha Moment:
[State the ONE core insight]

What-Why-Where Check:
✅ WHAT: [How concept is defined]
✅ WHY: [Mechanism/importance shown]
✅ WHERE: [Action/direction given]

Call To Action:
[Unique CTA specific to this content ending with the link]

Validation:
[One line on how this concept meets the principles above]"""

# -----------------------------------------------------------------------------
# Single pass
# -----------------------------------------------------------------------------

PROMPT_SINGLE_PASS_MARKDOWN = """{{BASE_PROMPT}}

SOURCE CONTENT TO ANALYZE:
{{SOURCE_TEXT}}

NEWSLETTER LINK: {{LINK}}

Please analyze this content and create 3-5 concepts following the methodology outlined above. Ensure each concept has a single aha moment, complete What-Why-Where cycles, and follows all core principles.

Format your response with the exact structure specified above: every concept starts with a line "CONCEPT #N: title", followed by the labeled sections "Main Content:", "Single Aha Moment:", "What-Why-Where Check:", "Call To Action:" and "Validation:". Each CTA must end with the newsletter link and nothing after it."""

PROMPT_SINGLE_PASS_JSON = """{{JSON_ONLY_RULE}}

{{BASE_PROMPT}}

SOURCE CONTENT:
{{SOURCE_TEXT}}

NEWSLETTER LINK: {{LINK}}

Your response must be exactly this JSON format with no additional text:
{{CONCEPTS_SCHEMA}}"""

# -----------------------------------------------------------------------------
# Multi pass
# -----------------------------------------------------------------------------

PROMPT_ANALYZE = """{{JSON_ONLY_RULE}}

Analyze this source content to inform short-form post generation strategy:

SOURCE CONTENT:
{{SOURCE_TEXT}}

Analyze for:
1. Content Type: Educational/Story/Framework/Case Study/Contrarian Take
2. Core Theme: What's the main message?
3. Key Insights: List 3-5 standout insights worth posting
4. Audience Level: Beginner/Intermediate/Advanced business concepts
5. Emotional Tone: Practical/Inspirational/Contrarian/Analytical
6. Best Thread Starters: Which of these templates would work best?
   - Transformation Story
   - System Breakdown
   - Results-First Hook
   - Contrarian Take
   - Experience Share

Your response must be exactly this JSON format with no additional text:
{
  "contentType": "",
  "coreTheme": "",
  "keyInsights": ["", "", ""],
  "audienceLevel": "",
  "emotionalTone": "",
  "recommendedTemplates": ["", ""],
  "complexityNotes": ""
}"""

PROMPT_DRAFT = """{{JSON_ONLY_RULE}}

CONTENT ANALYSIS CONTEXT:
- Content Type: {{CONTENT_TYPE}}
- Core Theme: {{CORE_THEME}}
- Audience Level: {{AUDIENCE_LEVEL}}
- Recommended Templates: {{RECOMMENDED_TEMPLATES}}
- Key Insights Available: {{KEY_INSIGHTS}}

GENERATION FOCUS:
Based on this analysis, generate concepts that leverage the {{CONTENT_TYPE}} format with {{EMOTIONAL_TONE}} tone, targeting a {{AUDIENCE_LEVEL}} audience.

{{BASE_PROMPT}}

SOURCE CONTENT TO TRANSFORM:
{{SOURCE_TEXT}}

Focus on the recommended templates and ensure each concept captures one of the identified key insights while maintaining the analyzed emotional tone.

Your response must be exactly this JSON format with no additional text:
{{CONCEPTS_SCHEMA}}"""

PROMPT_ASSESS = """{{JSON_ONLY_RULE}}

Assess these concepts against high-quality standards and identify specific improvement areas:

CONCEPTS TO ASSESS:
{{CONCEPTS_JSON}}

QUALITY CRITERIA:
1. Hook Strength: Does each post grab attention immediately?
2. Aha Moment Clarity: Is there ONE clear insight per concept?
3. What-Why-Where Completeness: Are all cycles present and clear?
4. Mechanism Explanation: Are concepts explained, not just named?
5. Audience Context: Is necessary background provided?
6. CTA Specificity: Are CTAs unique and tied to specific content?
7. Natural Flow: Does it sound conversational?

For each concept, identify what's working well, specific gaps or weaknesses, and concrete improvement suggestions.

Your response must be exactly this JSON format with no additional text:
{
  "overallQuality": "High/Medium/Low",
  "needsRefinement": true,
  "feedback": {
    "concept1": {"strengths": [""], "weaknesses": [""], "improvements": [""]},
    "globalIssues": [""],
    "priorityFixes": [""]
  }
}"""

PROMPT_REFINE = """{{JSON_ONLY_RULE}}

REFINEMENT TASK:
Improve these concepts based on specific quality feedback.

ORIGINAL CONCEPTS:
{{CONCEPTS_JSON}}

QUALITY FEEDBACK:
{{FEEDBACK_JSON}}

REFINEMENT INSTRUCTIONS:
1. Address each identified weakness specifically
2. Strengthen hooks where noted
3. Clarify aha moments that are unclear
4. Complete missing What-Why-Where cycles
5. Improve mechanism explanations
6. Enhance audience context where lacking
7. Make CTAs more specific and unique

Requirements:
- Keep every post under 500 characters
- Maintain an authentic conversational tone
- Don't change what's already working well

Your response must be exactly this JSON format with no additional text:
{{CONCEPTS_SCHEMA}}"""

PROMPT_ENHANCE_CTA = """{{JSON_ONLY_RULE}}

TASK: Enhance CTAs with the newsletter link and improved bridge language.

CURRENT CONCEPTS:
{{CONCEPTS_JSON}}

NEWSLETTER LINK: {{LINK}}

CONTENT CONTEXT:
- Theme: {{CORE_THEME}}
- Content Type: {{CONTENT_TYPE}}
- Key Insights: {{KEY_INSIGHTS}}

CTA ENHANCEMENT REQUIREMENTS:
1. Replace newsletter link placeholders with the actual link
2. Create specific bridges that reference the exact concept from each post
3. Make each CTA unique to its specific content
4. Ensure the link is the final element (nothing after it)
5. Keep under 500 characters

Your response must be exactly this JSON format with no additional text:
{{CONCEPTS_SCHEMA}}"""


def fill_prompt(template: str, **values: object) -> str:
    """
    Replace {{KEY}} placeholders in one pass; keys are matched upper-cased.

    Substituted text is never rescanned, so a source document quoting "{{LINK}}"
    reaches the model verbatim. BASE_PROMPT is filled first with the other
    values, so a workspace prompt page may use the same placeholders.
    Unknown placeholders are left as-is.
    """
    table = {"JSON_ONLY_RULE": JSON_ONLY_RULE, "CONCEPTS_SCHEMA": CONCEPTS_SCHEMA}
    table.update({key.upper(): str(value) for key, value in values.items() if value is not None})
    if "BASE_PROMPT" in table:
        others = {k: v for k, v in table.items() if k != "BASE_PROMPT"}
        table["BASE_PROMPT"] = _substitute(table["BASE_PROMPT"], others)
    return _substitute(template, table)


def _substitute(text: str, table: dict[str, str]) -> str:
    return _PLACEHOLDER_RE.sub(lambda m: table.get(m.group(1), m.group(0)), text)
