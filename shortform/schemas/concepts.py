import re
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

NOT_SPECIFIED = "Not specified"

_WWW_PART_RE = re.compile(
    r"(?:^|\n)[^\S\n]*(?:[-*•✅❌☑️]+[^\S\n]*)?\**(WHAT|WHY|WHERE)\**[^\S\n]*[:\-–][^\S\n]*"
    r"([\s\S]*?)(?=\n[^\S\n]*(?:[-*•✅❌☑️]+[^\S\n]*)?\**(?:WHAT|WHY|WHERE)\**[^\S\n]*[:\-–]|\Z)",
    re.IGNORECASE,
)

# Alternative keys models use for the same concept field, in priority order.
_TITLE_KEYS = ("title", "concept", "name", "heading", "headline")
_POSTS_KEYS = ("posts", "mainContent", "main_content", "content", "tweets", "thread", "text")
_AHA_KEYS = ("aha_moment", "ahaMoment", "singleAhaMoment", "single_aha_moment", "aha")
_WWW_KEYS = ("what_why_where", "whatWhyWhere", "whatWhyWhereCheck", "what_why_where_check")
_CTA_KEYS = ("cta", "callToAction", "call_to_action", "ctaTweet", "cta_tweet", "ctaPost")
_NOTE_KEYS = ("quality_note", "qualityNote", "validation", "validationNote")


def _first(data: dict, keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, "", [], {}):
            return value
    return None


def _coerce_posts(raw: Any) -> list[str]:
    """Accept a string, a list of strings/dicts, or a {posts: [...]} wrapper."""
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw.strip()] if raw.strip() else []
    if isinstance(raw, dict):
        inner = _first(raw, ("posts", "tweets", "text", "content"))
        return _coerce_posts(inner)
    if isinstance(raw, list):
        out: list[str] = []
        for item in raw:
            if isinstance(item, dict):
                item = _first(item, ("text", "content", "post", "body"))
            if item is None:
                continue
            text = str(item).strip()
            if text:
                out.append(text)
        return out
    text = str(raw).strip()
    return [text] if text else []


def _as_text(raw: Any) -> str:
    if raw is None:
        return ""
    if isinstance(raw, list):
        return "\n".join(str(x).strip() for x in raw if str(x).strip())
    return str(raw).strip()


class WhatWhyWhere(BaseModel):
    what: str = NOT_SPECIFIED
    why: str = NOT_SPECIFIED
    where: str = NOT_SPECIFIED

    @field_validator("what", "why", "where", mode="before")
    @classmethod
    def placeholder_when_blank(cls, v: Any) -> str:
        text = _as_text(v)
        return text or NOT_SPECIFIED

    @classmethod
    def from_text(cls, text: str | None) -> "WhatWhyWhere":
        """Parse "WHAT: ... / WHY: ... / WHERE: ..." lines (check-mark bullets allowed)."""
        parts: dict[str, str] = {}
        for match in _WWW_PART_RE.finditer(text or ""):
            key = match.group(1).lower()
            if key not in parts:
                parts[key] = match.group(2).strip().strip("*").strip()
        return cls(**parts)

    @classmethod
    def coerce(cls, raw: Any) -> "WhatWhyWhere":
        if isinstance(raw, WhatWhyWhere):
            return raw
        if isinstance(raw, dict):
            lowered = {str(k).lower(): v for k, v in raw.items()}
            return cls(what=lowered.get("what"), why=lowered.get("why"), where=lowered.get("where"))
        if isinstance(raw, str):
            return cls.from_text(raw)
        return cls()


class ConceptRecord(BaseModel):
    """One short-form concept: posts + aha moment + what/why/where + CTA."""

    number: int = Field(ge=1)
    title: str = ""
    posts: list[str] = Field(default_factory=list)
    # Computed by the validator from the normalized posts; never taken from the model.
    character_counts: list[str] = Field(default_factory=list)
    aha_moment: str = ""
    what_why_where: WhatWhyWhere = Field(default_factory=WhatWhyWhere)
    cta: str = ""
    quality_note: str = ""
    strategy: Optional[str] = None
    parse_error: bool = False

    @model_validator(mode="before")
    @classmethod
    def accept_model_field_variants(cls, data: Any) -> Any:
        """Map the many key spellings models use onto the canonical fields."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["title"] = _as_text(_first(data, _TITLE_KEYS))
        if not isinstance(data.get("posts"), list) or not all(isinstance(p, str) for p in data["posts"]):
            data["posts"] = _coerce_posts(_first(data, _POSTS_KEYS))
        data["aha_moment"] = _as_text(_first(data, _AHA_KEYS))
        if not isinstance(data.get("what_why_where"), WhatWhyWhere):
            data["what_why_where"] = WhatWhyWhere.coerce(_first(data, _WWW_KEYS))
        data["cta"] = _as_text(_first(data, _CTA_KEYS))
        data["quality_note"] = _as_text(_first(data, _NOTE_KEYS))
        if data.get("strategy") is not None and not isinstance(data["strategy"], str):
            data["strategy"] = _as_text(data["strategy"])
        return data

    @staticmethod
    def has_concept_fields(data: dict) -> bool:
        """True when the object carries a title, posts or CTA under any known spelling."""
        return any(_first(data, keys) is not None for keys in (_TITLE_KEYS, _POSTS_KEYS, _CTA_KEYS))

    def to_prompt_dict(self) -> dict:
        """Shape used when feeding concepts back into a later prompt."""
        return {
            "concept": self.title,
            "strategy": self.strategy or "",
            "mainContent": {"posts": list(self.posts), "characterCounts": list(self.character_counts)},
            "ahaMoment": self.aha_moment,
            "whatWhyWhere": self.what_why_where.model_dump(),
            "cta": self.cta,
        }


class StageResult(BaseModel):
    """Raw output of one generative call plus timing/outcome."""

    stage: str
    text: str = ""
    elapsed_ms: float = 0.0
    ok: bool = True
    error: Optional[str] = None


class GenerationBatch(BaseModel):
    """Ordered concepts produced for one source document in one run."""

    concepts: list[ConceptRecord] = Field(default_factory=list)
    mode: str = "single_pass"
    stages: list[StageResult] = Field(default_factory=list)
