"""Application configuration using pydantic-settings."""
from functools import lru_cache
from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).resolve().parents[3] / ".env"),
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI
    openai_api_key: str = ""
    openai_base_url: str | None = None

    # Application
    log_level: str = "INFO"
    log_json: bool = True
    data_dir: str = "./db"
    default_tenant_id: str = ""

    # LLM
    llm_model: str = "gpt-4o-mini"
    llm_temperature: float = 0.2
    llm_max_tokens: int = 800
    llm_timeout_seconds: float = 30.0
    # Falls back to llm_model when empty.
    duplicate_check_model: str = ""

    # Agent loop
    agent_max_loops: int = 5
    agent_history_messages: int = 4
    knowledge_max_results: int = 3

    def resolved_openai_api_key(self) -> str | None:
        """
        Resolve API key for OpenAI-compatible clients.

        Local endpoints (e.g. Ollama) often do not require a real key, but the
        OpenAI SDK still expects a non-empty value.
        """
        key = (self.openai_api_key or "").strip()
        if key and key != "sk-your-key-here":
            return key
        if self._is_local_base_url():
            return "local-dev"
        return None

    def _is_local_base_url(self) -> bool:
        if not self.openai_base_url:
            return False
        try:
            host = (urlparse(self.openai_base_url).hostname or "").lower()
        except ValueError:
            return False
        return host in {"localhost", "127.0.0.1", "::1"} or host.endswith(".local")

    def resolved_duplicate_check_model(self) -> str:
        return (self.duplicate_check_model or "").strip() or self.llm_model


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
