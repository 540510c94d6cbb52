"""Shared pipeline constants."""

import re

# Per-post and per-CTA size bound (characters)
POST_CHAR_LIMIT = 500
ELLIPSIS = "..."
TRUNCATE_AT = POST_CHAR_LIMIT - len(ELLIPSIS)

# Characters of raw model text kept on an ExtractionFailure
EXTRACTION_PREVIEW_CHARS = 200

# Workspace limit for one rich-text run
RICH_TEXT_CHUNK = 2000

# Last-resort concept when nothing parses: first N chars of the model response
RAW_FALLBACK_CHARS = 500

# Placeholders models emit instead of the real CTA link
LINK_PLACEHOLDER_RE = re.compile(
    r"\[\s*(?:newsletter[ _-]?)?link\s*\]"
    r"|\{\{\s*(?:newsletter[ _-]?)?link\s*\}\}"
    r"|<\s*(?:newsletter[ _-]?)?link\s*>"
    r"|https?://your-newsletter(?:-link)?\.com/?",
    re.IGNORECASE,
)

URL_RE = re.compile(r"(?:https?://|www\.)\S+", re.IGNORECASE)

# Workspace page ids: dashed UUID or 32 hex chars
PAGE_ID_RE = re.compile(
    r"^(?:[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}|[a-f0-9]{32})$",
    re.IGNORECASE,
)
