"""Application configuration using Pydantic Settings.

Environment variables are loaded from .env files and system environment.
Execution defaults defined here seed ``ExecutionOptions`` when a caller
does not provide its own.
"""

from functools import lru_cache
from typing import Any, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    All settings can be overridden via environment variables.
    Environment variables take precedence over .env file values.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Application
    PROJECT_NAME: str = "Flow Engine API"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"

    # Server
    HOST: str = "127.0.0.1"
    PORT: int = 8000

    # CORS
    ALLOWED_ORIGINS: list[str] = ["http://localhost:3000"]

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v: Any) -> list[str]:
        """Parse ALLOWED_ORIGINS from comma-separated string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        if isinstance(v, list):
            return v
        return ["http://localhost:3000"]

    # Database (audit log persistence)
    DATABASE_URL: str = "sqlite+aiosqlite:///./flowengine.db"
    DATABASE_ECHO: bool = False

    # Execution log backend
    EXECUTION_LOG_BACKEND: Literal["memory", "database"] = "memory"

    # Execution defaults
    EXECUTION_TIMEOUT_SECONDS: float = 300.0
    NODE_TIMEOUT_SECONDS: float = 60.0
    EXECUTION_MAX_RETRIES: int = 0
    EXECUTION_RETRY_DELAY_SECONDS: float = 5.0
    EXECUTION_PARALLEL: bool = True
    EXECUTION_HISTORY_LIMIT: int = 1000  # Finished runs kept for lookup

    # HTTP request node
    HTTP_NODE_TIMEOUT_SECONDS: float = 30.0
    HTTP_NODE_MAX_RESPONSE_BYTES: int = 10 * 1024 * 1024  # 10MB

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = None  # No file handler when unset
    LOG_JSON_FORMAT: bool = True
    LOG_SENSITIVE_FILTER: bool = True


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Settings are cached after first load for performance.
    """
    return Settings()


# Global settings instance
settings = get_settings()
