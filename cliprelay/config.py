"""
Single source of truth for application configuration.
All settings are typed and loaded from environment variables.
"""
from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with graceful degradation.

    - If DATABASE_URL is missing, persistence falls back to process memory
    - If a vendor API key is missing, models of that vendor answer 503
    - All settings have sensible defaults for local development
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
    )

    # === API Configuration ===
    ALLOWED_ORIGINS: list[str] = Field(
        default=["*"],
        description="CORS allowed origins (phone clients call the API directly)"
    )
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")

    # === Database (optional) ===
    DATABASE_URL: Optional[str] = Field(
        default=None,
        description="SQLAlchemy database URL; in-memory storage when unset"
    )

    # === Model vendors ===
    ANTHROPIC_API_KEY: Optional[str] = Field(
        default=None,
        description="Anthropic API key for claude-* models"
    )
    OPENAI_API_KEY: Optional[str] = Field(
        default=None,
        description="OpenAI API key for gpt-* / o-series models"
    )
    TEXT_MODEL: str = Field(
        default="claude-sonnet-4-5",
        description="Default model for note analysis, proofreading and template fill"
    )
    READER_MODEL: str = Field(
        default="claude-sonnet-4-5",
        description="Default model for the image reader stage"
    )
    INTERPRETER_MODEL: str = Field(
        default="claude-opus-4-1",
        description="Default model for the interpreter stage"
    )
    MAX_OUTPUT_TOKENS: int = Field(default=4096, ge=256, le=64000)
    THINKING_BUDGET: int = Field(
        default=0,
        ge=0,
        le=32000,
        description="Default extended-thinking budget for the interpreter (0 disables)"
    )
    REQUEST_TIMEOUT_SECONDS: float = Field(default=120.0, ge=1.0)

    # === Retry Configuration ===
    HTTP_RETRY_MAX_ATTEMPTS: int = Field(default=3, ge=1, le=10)
    HTTP_RETRY_WAIT_MIN_SECONDS: float = Field(default=1.0, ge=0.0)
    HTTP_RETRY_WAIT_MAX_SECONDS: float = Field(default=10.0, ge=0.0)

    # === Rooms ===
    ROOM_TTL_SECONDS: int = Field(
        default=3600,
        ge=1,
        description="Rooms idle longer than this are swept"
    )
    ROOM_SWEEP_INTERVAL_SECONDS: int = Field(default=300, ge=1)

    # === Image pipeline ===
    MAX_IMAGES: int = Field(default=10, ge=1, le=50)
    MAX_IMAGE_BYTES: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Decoded size limit per image"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Accept lower-case level names from the environment."""
        return v.strip().upper() or "INFO"

    @property
    def database_enabled(self) -> bool:
        """Check if a relational store is configured."""
        return bool(self.DATABASE_URL)

    @property
    def anthropic_available(self) -> bool:
        return bool(self.ANTHROPIC_API_KEY)

    @property
    def openai_available(self) -> bool:
        return bool(self.OPENAI_API_KEY)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    This is the single entry point for all configuration.
    The LRU cache ensures we only parse env vars once.
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Force reload settings from environment.
    Useful for testing or when env vars change at runtime.
    """
    get_settings.cache_clear()
    return get_settings()
