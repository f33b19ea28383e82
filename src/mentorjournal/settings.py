from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration."""

    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    ai_provider: Literal["cloud", "local"] = "cloud"
    model: str = "gpt-4o-mini"
    temperature: float = 0.7
    openai_api_key: str | None = None
    openai_base_url: str | None = "https://api.openai.com/v1"

    local_model: str = "gemma-3-1b-it"
    local_base_url: str = "http://localhost:11434/v1"
    ai_request_timeout_seconds: float = 60.0

    # Small models overflow on the full template structure.
    compact_prompts: bool = False

    cors_origins: str = "*"

    redis_url: str | None = None
    session_ttl_seconds: int = 7 * 86400
    journal_key: str = "journal:entries"

    default_guide_prompt: str = (
        "You are a compassionate and supportive journaling guide. "
        "Help the user complete this structured journal entry by asking one "
        "question at a time. Be warm, encouraging, and non-judgmental."
    )
    opening_instruction: str = (
        "Start the journaling session. Greet the user warmly and ask the first question."
    )
    transition_instruction: str = (
        "Continue the conversation. Move to the next question."
    )
    closing_instruction: str = (
        "The user has completed all fields. Provide a warm summary and closing message."
    )
    extraction_instruction: str = (
        "Return a JSON object with keys matching the field labels above. "
        "For fields not answered, use null. "
        'Format: {"Field1": "value1", "Field2": "value2", ...}'
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="",
        extra="allow",
    )

    @property
    def use_compact_prompts(self) -> bool:
        """Compact prompts are used for local models or when forced."""
        return self.compact_prompts or self.ai_provider == "local"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the application settings singleton (loaded from env / .env)."""
    return Settings()
