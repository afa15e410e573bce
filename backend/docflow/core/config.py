"""
docflow settings, read from the environment or a local .env file.
Field names map case-insensitively to variables (OPENAI_API_KEY, OCR_ENABLED, ...).
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # ------------------------------------------------------------------
    # OpenAI
    # ------------------------------------------------------------------
    openai_api_key:  str = ""
    openai_base_url: str | None = None   # OpenAI-compatible gateways

    # Embeddings
    embedding_model:      str = "text-embedding-3-small"
    embedding_dimensions: int = 1536
    embedding_batch_size: int = 50    # pages per provider call

    # ------------------------------------------------------------------
    # LLM (overviews, section titles, topics, table of contents)
    # ------------------------------------------------------------------
    llm_model:       str   = "gpt-4o-mini"
    llm_temperature: float = 0.0
    llm_max_tokens:  int   = 2048

    # ------------------------------------------------------------------
    # Document processing
    # ------------------------------------------------------------------
    ocr_enabled: bool = False
    overview_fallback_text: str = "An overview for this content is currently unavailable"

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------
    langsmith_api_key: str = ""
    langsmith_project: str = "docflow"

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    debug: bool = False   # DEBUG log level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
