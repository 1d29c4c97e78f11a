"""
Engine settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Every value has a default, so an empty environment is valid.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Engine settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on first access.
    """

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Runtime environment (selects the log renderer)"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )

    # ===================
    # IMPORT LOG
    # ===================
    log_file: Optional[str] = Field(
        default="import.log",
        description="Path of the append-only import diagnostic log"
    )
    verbose_logging: bool = Field(
        default=False,
        description="Write VERBOSE entries to the import log"
    )

    # ===================
    # SECTION DETECTION
    # ===================
    header_overlap_threshold: float = Field(
        default=0.30,
        ge=0,
        le=1,
        description="Minimum share of a type's declared headers a header row must contain"
    )
    strict_missing_required_headers: bool = Field(
        default=False,
        description="Fail imports when a required Error-severity header is never seen"
    )

    # ===================
    # SOURCE FILES
    # ===================
    csv_encoding: str = Field(
        default="utf-8-sig",
        description="Encoding used to read CSV sources"
    )
    file_ready_timeout_seconds: float = Field(
        default=5.0,
        ge=0,
        le=120,
        description="How long to wait for a locked source file"
    )
    file_ready_retry_delay_ms: int = Field(
        default=250,
        ge=10,
        le=5000,
        description="Delay between readiness attempts"
    )

    # ===================
    # MAPPING SUGGESTIONS
    # ===================
    suggestion_threshold: float = Field(
        default=0.6,
        ge=0,
        le=1,
        description="Minimum score to accept an auto-mapped column"
    )
    suggestion_min_score: float = Field(
        default=0.4,
        ge=0,
        le=1,
        description="Minimum score for a column to be considered at all"
    )
    suggestion_id_threshold: float = Field(
        default=0.85,
        ge=0,
        le=1,
        description="Threshold for identifier fields against descriptor-like columns"
    )
    suggestion_max_results: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Candidates kept per field when suggesting"
    )

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def file_ready_retry_delay_seconds(self) -> float:
        return self.file_ready_retry_delay_ms / 1000


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Engine settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()


# For convenient imports: from config.settings import settings
settings = get_settings()
