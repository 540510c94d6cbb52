import logging
from abc import ABC, abstractmethod

import httpx

from shortform.core import get_settings

logger = logging.getLogger(__name__)


class GenerationServiceError(Exception):
    """Raised when the generative text API is unavailable or returns invalid or unexpected output."""


class GenerationRateLimitError(GenerationServiceError):
    """Raised when the generative text API rate limits or rejects the request for quota."""


class GenerationConfigError(GenerationServiceError):
    """Raised when no generative backend is configured."""


def _raise_for_status(e: httpx.HTTPStatusError, service: str) -> None:
    if e.response.status_code == 429:
        raise GenerationRateLimitError(
            f"{service} rate limited the request. Please retry later."
        ) from e
    body = getattr(e.response, "text", None) or ""
    if body:
        logger.warning("%s error %s: %s", service, e.response.status_code, body[:500])
    raise GenerationServiceError(
        f"{service} returned {e.response.status_code}."
    ) from e


class GenerationProvider(ABC):
    """One prompt in, one text blob out. Opaque to model identity."""

    model: str

    @abstractmethod
    async def generate(self, prompt: str, max_output_tokens: int = 4000) -> str:
        pass


class AnthropicGenerationProvider(GenerationProvider):
    """Anthropic Messages API."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://api.anthropic.com/v1",
        api_version: str = "2023-06-01",
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.api_version = api_version
        self.timeout = timeout

    async def generate(self, prompt: str, max_output_tokens: int = 4000) -> str:
        payload = {
            "model": self.model,
            "max_tokens": max_output_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": self.api_version,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(f"{self.base_url}/messages", json=payload, headers=headers)
                r.raise_for_status()
                data = r.json()
        except httpx.HTTPStatusError as e:
            _raise_for_status(e, "Messages API")
        except httpx.RequestError as e:
            raise GenerationServiceError(
                "Generation service unavailable (timeout or connection error)."
            ) from e
        except ValueError as e:
            raise GenerationServiceError("Messages API returned a non-JSON body.") from e

        blocks = data.get("content") if isinstance(data, dict) else None
        if not isinstance(blocks, list):
            raise GenerationServiceError("Messages API returned unexpected response format.")
        text = "".join(
            b.get("text") or ""
            for b in blocks
            if isinstance(b, dict) and b.get("type") == "text"
        ).strip()
        if not text:
            raise GenerationServiceError(
                f"Messages API returned empty content (stop_reason={data.get('stop_reason')})."
            )
        return text


class OpenAICompatibleGenerationProvider(GenerationProvider):
    """OpenAI-compatible endpoint (vLLM, etc.)."""

    def __init__(
        self,
        base_url: str,
        api_key: str | None,
        model: str,
        timeout: float = 120.0,
    ):
        self.base_url = base_url.rstrip("/")
        if not self.base_url.endswith("/v1"):
            self.base_url = f"{self.base_url}/v1"
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    async def generate(self, prompt: str, max_output_tokens: int = 4000) -> str:
        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_output_tokens,
            "temperature": 0.7,
        }
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                r = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=headers,
                )
                r.raise_for_status()
                data = r.json()
            choices = data.get("choices") or []
            if not choices:
                raise GenerationServiceError(
                    "Chat API returned no choices (e.g. content filter)."
                )
            content = (choices[0].get("message") or {}).get("content")
        except httpx.HTTPStatusError as e:
            _raise_for_status(e, "Chat API")
        except httpx.RequestError as e:
            raise GenerationServiceError(
                "Generation service unavailable (timeout or connection error)."
            ) from e
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise GenerationServiceError("Chat API returned unexpected response format.") from e

        if content is None or not isinstance(content, str):
            raise GenerationServiceError("Chat API returned missing or non-string content.")
        stripped = content.strip()
        if not stripped:
            raise GenerationServiceError("Chat API returned empty content.")
        return stripped


class OpenAIGenerationProvider(OpenAICompatibleGenerationProvider):
    """Official OpenAI API."""

    def __init__(self):
        s = get_settings()
        super().__init__(
            base_url="https://api.openai.com/v1",
            api_key=s.openai_api_key,
            model=s.chat_model or _OPENAI_DEFAULT_MODEL,
            timeout=s.generation_timeout_seconds,
        )


# Default model for OpenAI official API when CHAT_MODEL is not set
_OPENAI_DEFAULT_MODEL = "gpt-4o-mini"
# Default model for OpenAI-compatible (vLLM, etc.) when CHAT_MODEL is not set
_OPENAI_COMPATIBLE_DEFAULT_MODEL = "Qwen/Qwen2.5-7B-Instruct"


def get_generation_provider() -> GenerationProvider:
    s = get_settings()
    if s.anthropic_api_key:
        if not s.claude_model_name:
            raise GenerationConfigError("ANTHROPIC_API_KEY is set but CLAUDE_MODEL_NAME is missing.")
        return AnthropicGenerationProvider(
            api_key=s.anthropic_api_key,
            model=s.claude_model_name,
            base_url=s.anthropic_api_base_url,
            api_version=s.anthropic_version,
            timeout=s.generation_timeout_seconds,
        )
    if s.openai_api_key and not s.chat_api_base_url:
        return OpenAIGenerationProvider()
    if s.chat_api_base_url:
        return OpenAICompatibleGenerationProvider(
            base_url=s.chat_api_base_url,
            api_key=s.chat_api_key,
            model=s.chat_model or _OPENAI_COMPATIBLE_DEFAULT_MODEL,
            timeout=s.generation_timeout_seconds,
        )
    raise GenerationConfigError(
        "Generation not configured. Set ANTHROPIC_API_KEY and CLAUDE_MODEL_NAME, "
        "OPENAI_API_KEY, or CHAT_API_BASE_URL (and CHAT_MODEL)."
    )
