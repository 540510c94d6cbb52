"""Core configuration and shared infrastructure."""

from shortform.core.config import Settings, get_settings
from shortform.core.constants import POST_CHAR_LIMIT, TRUNCATE_AT, ELLIPSIS
from shortform.core.limiter import limiter

__all__ = [
    "Settings",
    "get_settings",
    "POST_CHAR_LIMIT",
    "TRUNCATE_AT",
    "ELLIPSIS",
    "limiter",
]
