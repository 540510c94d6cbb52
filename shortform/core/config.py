from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env from the repository root so it works regardless of CWD
_env_file = Path(__file__).resolve().parent.parent.parent / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=_env_file, extra="ignore")

    # Document workspace (Notion)
    notion_token: str | None = None
    notion_api_base_url: str = "https://api.notion.com/v1"
    notion_version: str = "2022-06-28"
    emails_database_id: str | None = None
    shortform_database_id: str | None = None
    source_relation_property: str = "E-mails"
    title_property: str = "Title"
    # Optional page holding the prompt template; None => built-in default prompt
    prompt_page_id: str | None = None

    newsletter_link: str = "https://your-newsletter.com"

    # Generation (Anthropic Messages API)
    anthropic_api_key: str | None = None
    anthropic_api_base_url: str = "https://api.anthropic.com/v1"
    anthropic_version: str = "2023-06-01"
    claude_model_name: str | None = None

    # Generation (OpenAI-compatible); used when no Anthropic key is set
    chat_api_base_url: str | None = None
    chat_api_key: str | None = None
    chat_model: str | None = None
    openai_api_key: str | None = None

    generation_timeout_seconds: float = 120.0

    # Pipeline
    multi_pass_enabled: bool = False
    single_pass_format: Literal["markdown", "json"] = "markdown"

    webhook_rate_limit: str = "60/minute"
    log_level: str = "INFO"

    @property
    def generation_configured(self) -> bool:
        return bool(
            (self.anthropic_api_key and self.claude_model_name)
            or self.openai_api_key
            or self.chat_api_base_url
        )

    def missing_required(self) -> list[str]:
        """Env vars a working deployment still needs."""
        missing = [
            name
            for name, value in (
                ("NOTION_TOKEN", self.notion_token),
                ("EMAILS_DATABASE_ID", self.emails_database_id),
                ("SHORTFORM_DATABASE_ID", self.shortform_database_id),
            )
            if not value
        ]
        if not self.generation_configured:
            if self.anthropic_api_key and not self.claude_model_name:
                missing.append("CLAUDE_MODEL_NAME")
            else:
                missing.append("ANTHROPIC_API_KEY")
        return missing


@lru_cache
def get_settings() -> Settings:
    return Settings()
