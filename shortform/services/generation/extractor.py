"""
Structured text extraction from model output.

The model is asked for JSON but routinely wraps it in prose, code fences or
near-JSON. ``extract`` tries each strategy in STRATEGIES order and returns the
first object/array any of them produces; a repair pass over the best
candidate span runs last. Strategies are pure ``str -> value | None``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Optional

from .errors import ExtractionFailure

logger = logging.getLogger(__name__)

ParsedValue = dict | list

_DATA_FENCE_RE = re.compile(r"```[ \t]*(?:json5?|jsonc)[ \t]*\n?([\s\S]*?)```", re.IGNORECASE)
_SCRIPT_FENCE_RE = re.compile(
    r"```[ \t]*(?:javascript|js|typescript|ts|python|py)[ \t]*\n?([\s\S]*?)```",
    re.IGNORECASE,
)
_BRACE_SPAN_RE = re.compile(r"\{[\s\S]*\}")
_LABELED_RE = re.compile(
    r"(?:Response|Result|Output)\s*:\s*(\{[\s\S]*\}|\[[\s\S]*\])",
    re.IGNORECASE,
)

_DQ_STRING_RE = re.compile(r'"(?:[^"\\]|\\.)*"')
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_BAREWORD_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_$][\w$-]*)(\s*:)")
_SINGLE_QUOTED_RE = re.compile(r"(?<=[:\[{,])(\s*)'((?:[^'\\\n]|\\.)*)'(?=\s*[,}\]:])")


def _loads(candidate: Optional[str]) -> Optional[ParsedValue]:
    if candidate is None:
        return None
    candidate = candidate.strip()
    if not candidate:
        return None
    try:
        value = json.loads(candidate)
    except (ValueError, TypeError):
        return None
    return value if isinstance(value, (dict, list)) else None


def _data_fence_span(text: str) -> Optional[str]:
    m = _DATA_FENCE_RE.search(text)
    return m.group(1) if m else None


def _script_fence_span(text: str) -> Optional[str]:
    m = _SCRIPT_FENCE_RE.search(text)
    return m.group(1) if m else None


def _brace_span(text: str) -> Optional[str]:
    m = _BRACE_SPAN_RE.search(text)
    return m.group(0) if m else None


def _labeled_span(text: str) -> Optional[str]:
    m = _LABELED_RE.search(text)
    return m.group(1) if m else None


# -----------------------------------------------------------------------------
# Strategies
# -----------------------------------------------------------------------------

def parse_whole(text: str) -> Optional[ParsedValue]:
    return _loads(text)


def parse_data_fence(text: str) -> Optional[ParsedValue]:
    return _loads(_data_fence_span(text))


def parse_script_fence(text: str) -> Optional[ParsedValue]:
    """Models sometimes label a JSON block as javascript/python."""
    return _loads(_script_fence_span(text))


def parse_brace_span(text: str) -> Optional[ParsedValue]:
    return _loads(_brace_span(text))


def parse_labeled_response(text: str) -> Optional[ParsedValue]:
    return _loads(_labeled_span(text))


def _sub_outside_strings(text: str, fn: Callable[[str], str]) -> str:
    """Apply ``fn`` only to the parts of ``text`` outside double-quoted strings."""
    out: list[str] = []
    pos = 0
    for m in _DQ_STRING_RE.finditer(text):
        out.append(fn(text[pos:m.start()]))
        out.append(m.group(0))
        pos = m.end()
    out.append(fn(text[pos:]))
    return "".join(out)


def _structural_repairs(segment: str) -> str:
    segment = _TRAILING_COMMA_RE.sub(r"\1", segment)
    segment = _BAREWORD_KEY_RE.sub(r'\1"\2"\3', segment)
    return _SINGLE_QUOTED_RE.sub(
        lambda m: m.group(1) + json.dumps(m.group(2).replace("\\'", "'")),
        segment,
    )


def repair_json_text(text: str) -> str:
    """Fixed textual repairs: trailing commas, bareword keys, single quotes, raw control chars."""
    text = _sub_outside_strings(text, _structural_repairs)
    return _escape_control_chars_in_strings(text)


def _escape_control_chars_in_strings(text: str) -> str:
    out: list[str] = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            elif ch == "\n":
                out.append("\\n")
                continue
            elif ch == "\r":
                out.append("\\r")
                continue
            elif ch == "\t":
                out.append("\\t")
                continue
        elif ch == '"':
            in_string = True
        out.append(ch)
    return "".join(out)


def parse_repaired_candidate(text: str) -> Optional[ParsedValue]:
    """Repair the best candidate span (data fence, script fence, brace span) and parse once."""
    for span_of in (_data_fence_span, _script_fence_span, _brace_span):
        candidate = span_of(text)
        if candidate and candidate.strip():
            return _loads(repair_json_text(candidate))
    return None


STRATEGIES: tuple[Callable[[str], Optional[ParsedValue]], ...] = (
    parse_whole,
    parse_data_fence,
    parse_script_fence,
    parse_brace_span,
    parse_labeled_response,
    parse_repaired_candidate,
)


def extract(text: str) -> Any:
    """
    Return the first object/array any strategy extracts from ``text``.

    Raises:
        ExtractionFailure: every strategy failed; carries the first 200 chars of input.
    """
    if not text or not text.strip():
        raise ExtractionFailure(text or "", "Model returned empty text")
    for strategy in STRATEGIES:
        value = strategy(text)
        if value is not None:
            if strategy is not parse_whole:
                logger.debug("extract: succeeded via %s", strategy.__name__)
            return value
    logger.warning("extract: all strategies failed; preview=%r", text[:200])
    raise ExtractionFailure(text)
