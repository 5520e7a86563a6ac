"""Application configuration."""

import logging
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings

from med_evidence.constants import (
    DEFAULT_TIMEOUT,
    LLM_MAX_ATTEMPTS,
    LLM_MAX_TOKENS,
    LLM_MODEL,
    LLM_RETRY_DELAY,
    LLM_RETRY_MAX_DELAY,
    MAX_QUERY_LENGTH,
    NCBI_BASE_URL,
    PUBMED_CACHE_TTL,
    PUBMED_PAGE_SIZE,
    PUBMED_RATE_LIMIT,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Keys
    anthropic_api_key: str = ""
    ncbi_api_key: str = ""

    # PubMed
    pubmed_base_url: str = NCBI_BASE_URL
    pubmed_rate_limit_per_second: float = PUBMED_RATE_LIMIT
    pubmed_cache_ttl_seconds: int = PUBMED_CACHE_TTL
    pubmed_page_size: int = PUBMED_PAGE_SIZE

    # LLM Settings
    llm_model: str = LLM_MODEL
    llm_max_tokens: int = LLM_MAX_TOKENS
    llm_temperature: float = 0.1
    llm_max_attempts: int = LLM_MAX_ATTEMPTS
    llm_retry_delay: float = LLM_RETRY_DELAY
    llm_retry_max_delay: float = LLM_RETRY_MAX_DELAY
    llm_retry_strategy: Literal["fixed", "exponential"] = "exponential"

    # Pipeline
    max_query_length: int = MAX_QUERY_LENGTH
    request_timeout_seconds: float = DEFAULT_TIMEOUT
    pipeline_timeout_seconds: float | None = 120.0
    allow_partial_results: bool = True

    # App Settings
    debug: bool = False
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        frozen = True


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the CLI and the API server."""
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
