"""
Application settings for API Runner.

Values are read from environment variables prefixed with ``API_RUNNER_``
or from a ``.env`` file in the working directory.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the executor and its collaborators."""

    model_config = SettingsConfigDict(
        env_prefix="API_RUNNER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite:///./api_runner.db"
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    # Network execution contract
    request_timeout: float = 30.0
    connect_timeout: float = 10.0
    max_redirects: int = 5
    max_retries: int = 2
    retry_backoff: float = 1.0
    retry_idempotent_only: bool = False

    # TLS
    verify_tls: bool = True
    ca_bundle: str | None = None
    client_cert: str | None = None
    client_key: str | None = None


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings. Also used as a FastAPI dependency."""
    return Settings()
