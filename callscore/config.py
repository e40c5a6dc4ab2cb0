"""
Centralized application configuration.

All settings are driven by environment variables with sensible defaults.
Uses Pydantic BaseSettings for validation and type coercion.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # --- Application ---
    app_name: str = "CallScore"
    app_version: str = "0.1.0"
    environment: str = "development"  # development | staging | production
    debug: bool = True
    log_level: str = "INFO"  # DEBUG | INFO | WARNING | ERROR

    # --- Server ---
    host: str = "0.0.0.0"
    port: int = 8000

    # --- Database ---
    database_url: str = "sqlite:///./callscore.db"
    database_auto_create: bool = True
    database_degraded_ms: float = 1000.0

    # --- Generative model (coaching) ---
    openai_api_key: str | None = None
    openai_model: str = "gpt-4-turbo"
    coaching_timeout_seconds: float = 60.0
    coaching_temperature: float = 0.7
    coaching_max_tokens: int = 4000

    # --- Other external credentials (health checks only) ---
    elevenlabs_api_key: str | None = None
    stripe_secret_key: str | None = None

    # --- Resilience ---
    breaker_failure_threshold: int = 5
    breaker_reset_timeout_seconds: float = 30.0
    breaker_half_open_max_calls: int = 3
    retry_max_attempts: int = 3
    retry_initial_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0

    # --- Health ---
    memory_limit_mb: float = 1024.0
    health_max_errors: int = 100

    # --- Voice analytics ---
    voice_prefer_timestamps: bool = False

    # --- CORS ---
    allowed_origins: list[str] = ["*"]

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
    }


@lru_cache
def get_settings() -> Settings:
    """
    Return a cached Settings instance.

    Using lru_cache ensures we only read env vars once, and the same
    Settings object is reused across the application lifetime.
    """
    return Settings()
