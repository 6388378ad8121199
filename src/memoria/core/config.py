"""
Configuration management.

Loads settings from environment variables and .env file.
Prefix: MEMORIA_
"""

from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="MEMORIA_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Storage
    data_dir: Path = Field(default=Path("data"), description="Data storage directory")
    db_name: str = Field(default="memoria.db", description="SQLite database name")

    # Short-term memory
    max_stm_entries: int = Field(default=10, ge=1, description="Live STM turns per session")
    max_text_length: int = Field(default=2000, ge=1, description="Turn text cap after sanitizing")

    # Trigger policy
    prompt_cache_max_age_minutes: int = Field(default=60, description="Cache freshness window")
    high_priority_threshold: int = Field(default=4, ge=1, le=5, description="Importance fan-out priority")
    recent_session_lookback: int = Field(default=5, ge=1, description="Sessions refreshed per user")
    rebuild_timeout_seconds: float = Field(default=10.0, gt=0, description="Bound on one rebuild")

    # Prompt composition
    importance_min_priority: int = Field(default=3, ge=1, le=5)
    importance_limit: int = Field(default=20, ge=1)
    semantic_limit: int = Field(default=50, ge=1)
    episodic_limit: int = Field(default=5, ge=1)
    persona_name: str = Field(default="Zyra", description="Assistant persona name")

    # Chat completion
    default_model: str = Field(default="groq/llama3-8b-8192", description="LiteLLM model name")
    llm_api_key: str = Field(default="", description="API key for the completion provider")
    llm_api_base: str = Field(default="", description="Custom endpoint (OpenAI-compatible)")
    history_turns: int = Field(default=5, ge=0, description="STM turns sent as chat history")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def prompt_cache_max_age(self) -> timedelta:
        return timedelta(minutes=self.prompt_cache_max_age_minutes)


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()
