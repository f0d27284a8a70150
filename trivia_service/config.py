"""Configuration management for the trivia question service."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    env: str = "development"
    log_level: str = "INFO"
    log_file: Optional[str] = None

    # LLM API Keys (one secret per provider; a missing key disables the provider)
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    mistral_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None

    # Provider models
    openai_model: str = "gpt-4o-mini"
    anthropic_model: str = "claude-3-5-haiku-latest"
    google_model: str = "gemini-1.5-flash"
    mistral_model: str = "mistral-small-latest"
    groq_model: str = "llama-3.1-8b-instant"

    # Completion parameters
    temperature: float = 0.7
    max_tokens: int = 512
    default_answer_count: int = 4

    # Orchestrator attempts across providers (2 retries = 3 attempts)
    generation_max_retries: int = 2

    # Per-provider HTTP retry settings
    provider_max_retries: int = 3
    provider_timeout_seconds: float = 30.0
    retry_base_delay: float = 1.0
    retry_max_jitter: float = 1.0
    rate_limit_base_delay: float = 5.0
    rate_limit_max_jitter: float = 2.0

    # Duplicate cache
    question_cache_max_size: int = 10_000
    question_cache_ttl_seconds: Optional[float] = None

    # Observability (read by observability.setup_observability)
    sentry_dsn: Optional[str] = None


# Global settings instance
settings = Settings()
