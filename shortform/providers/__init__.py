from .generation import (
    GenerationConfigError,
    GenerationProvider,
    GenerationRateLimitError,
    GenerationServiceError,
    get_generation_provider,
)
from .notion import NotionConfigError, NotionServiceError, NotionWorkspace, get_notion_workspace

__all__ = [
    "GenerationConfigError",
    "GenerationProvider",
    "GenerationRateLimitError",
    "GenerationServiceError",
    "get_generation_provider",
    "NotionConfigError",
    "NotionServiceError",
    "NotionWorkspace",
    "get_notion_workspace",
]
