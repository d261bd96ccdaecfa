"""Application configuration managed via environment variables."""
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_DEFAULT_MODEL = "llama-3.3-70b-versatile"
OPENAI_DEFAULT_MODEL = "gpt-4"


@dataclass(frozen=True)
class AIProviderConfig:
    api_key: Optional[str]
    base_url: Optional[str]
    model: Optional[str]
    provider: Optional[str]

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "MindClear Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://mindclear@localhost:5432/mindclear"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "mindclear"
    openai_api_key: str | None = None
    groq_api_key: str | None = None
    ai_model: str | None = None
    ai_max_tokens: int = 2048
    ai_temperature: float = 0.7
    llm_timeout_seconds: float = 30.0
    phase_max_attempts: int = 3
    session_store: str = "memory"
    context_max_entries: int = 5

    def ai_provider(self) -> AIProviderConfig:
        """Resolve which OpenAI-compatible provider to talk to (Groq wins when both are set)."""
        if self.groq_api_key:
            return AIProviderConfig(
                api_key=self.groq_api_key,
                base_url=GROQ_BASE_URL,
                model=self.ai_model or GROQ_DEFAULT_MODEL,
                provider="groq",
            )
        if self.openai_api_key:
            return AIProviderConfig(
                api_key=self.openai_api_key,
                base_url=None,
                model=self.ai_model or OPENAI_DEFAULT_MODEL,
                provider="openai",
            )
        return AIProviderConfig(api_key=None, base_url=None, model=None, provider=None)


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
