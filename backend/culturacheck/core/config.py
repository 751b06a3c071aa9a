from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "CulturaCheck Middle East Compliance Advisor"
    environment: str = "development"
    log_config_path: Path = Path("backend/culturacheck/logging.yaml")
    log_level: str = "INFO"
    log_dir: Path = Path("backend/logs")
    enable_file_logging: bool = True
    enable_json_logs: bool = True
    sentry_dsn: Optional[str] = None
    cors_origins: List[str] = ["*"]

    # Knowledge base snapshot (produced offline, loaded once at startup)
    knowledge_base_path: Path = Field(
        default=Path("backend/data/knowledge-base.json"),
        validation_alias="KNOWLEDGE_BASE_PATH",
    )

    # LLM providers
    llm_provider: str = "openai"  # "openai" | "gemini" | "anthropic"
    openai_api_key: Optional[str] = None
    google_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("GEMINI_API_KEY", "GOOGLE_API_KEY"),
    )
    anthropic_api_key: Optional[str] = Field(default=None, validation_alias="ANTHROPIC_API_KEY")
    openai_model: str = "gpt-4o"
    openai_model_mini: str = "gpt-4o-mini"
    gemini_model_pro: str = "gemini-2.5-pro"
    gemini_model_flash: str = "gemini-2.5-flash"
    anthropic_model: str = "claude-sonnet-4-5-20250929"
    anthropic_model_mini: str = "claude-haiku-4-5"

    # Generation
    check_max_tokens: int = 4096
    chat_max_tokens: int = 1024
    keyword_max_tokens: int = 200
    keyword_extraction_timeout: float = 20.0  # seconds, expansion degrades to no keywords

    # Retrieval
    expanded_search_limit: int = 15
    keyword_search_limit: int = 5
    raw_query_search_limit: int = 10

    # Request validation
    max_text_length: int = 10000

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
