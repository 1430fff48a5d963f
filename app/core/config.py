"""
Configuration module with strict validation.

Key principles:
- APP STARTUP only requires DATABASE_URL
- Every external credential is optional at startup; the job that needs it
  decides whether a missing key degrades (news, fires, classification) or
  fails (photo verification)
- Ingestion sizes, rate-limit windows and retry behaviour are configurable
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.api_errors import ConfigurationError


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database (REQUIRED for API startup)
    database_url: str = Field(
        ...,
        description="SQLAlchemy database URL (PostgreSQL in production)"
    )

    # NewsData.io (OPTIONAL - news ingestion yields nothing without it)
    newsdata_api_key: Optional[str] = Field(
        default=None,
        description="NewsData.io API key for forest/environment news"
    )

    # OpenAI (OPTIONAL - classifier falls back to keyword rules)
    openai_api_key: Optional[str] = Field(
        default=None,
        description="OpenAI API key used for article categorization"
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Chat model used for article categorization"
    )

    # Global Forest Watch (OPTIONAL - public queries work without a key)
    gfw_api_key: Optional[str] = Field(
        default=None,
        description="GFW Data API key (sent as x-api-key)"
    )

    # NASA FIRMS (OPTIONAL - fire alerts are skipped without it)
    nasa_firms_api_key: Optional[str] = Field(
        default=None,
        description="NASA FIRMS map key for VIIRS active fire data"
    )

    # OpenRouter (REQUIRED for photo verification)
    openrouter_api_key: Optional[str] = Field(
        default=None,
        description="OpenRouter API key for the vision model"
    )
    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenAI-compatible base URL for the vision model"
    )
    ai_model_name: str = Field(
        default="google/gemini-2.0-flash-001",
        description="Vision model used to verify tree photos"
    )

    # Ingestion sizing
    news_page_size: int = Field(default=25, ge=1, le=50)
    gfw_lookback_days: int = Field(default=7, ge=1, le=90)
    firms_day_range: int = Field(default=1, ge=1, le=10)
    alert_row_limit: int = Field(
        default=200,
        ge=1,
        le=5000,
        description="Maximum alerts taken from each satellite source per run"
    )

    # Photo verification rate limiting (per caller IP)
    rate_limit_max_requests: int = Field(default=10, ge=1)
    rate_limit_window_minutes: int = Field(default=60, ge=1)

    # HTTP concurrency and retries
    max_concurrency: int = Field(
        default=4,
        ge=1,
        le=50,
        description="Maximum concurrent requests to external APIs"
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        le=10,
        description="Maximum number of retries for failed API requests"
    )
    retry_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff factor for retries"
    )

    # Scheduling
    enable_scheduler: bool = Field(
        default=False,
        description="Run the ingestion jobs periodically inside the API process"
    )
    news_refresh_minutes: int = Field(default=180, ge=5)
    alerts_refresh_minutes: int = Field(default=720, ge=5)

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper

    def require_openrouter_api_key(self) -> str:
        """
        Get the OpenRouter API key, raising a clear error if missing.

        Photo verification cannot degrade gracefully, so the verifier calls
        this before contacting the model.

        Raises:
            ConfigurationError: If the key is not configured
        """
        if not self.openrouter_api_key:
            raise ConfigurationError(
                "OPENROUTER_API_KEY is required for photo verification. "
                "Set it in your .env file or environment variables.",
                source="openrouter",
                missing_config="OPENROUTER_API_KEY",
            )
        return self.openrouter_api_key

    def require_nasa_firms_api_key(self) -> str:
        """
        Get the NASA FIRMS map key, raising a clear error if missing.

        Get a free key at: https://firms.modaps.eosdis.nasa.gov/api/map_key/
        """
        if not self.nasa_firms_api_key:
            raise ConfigurationError(
                "NASA_FIRMS_API_KEY is required for active fire data. "
                "Get a free key at: https://firms.modaps.eosdis.nasa.gov/api/map_key/",
                source="nasa_firms",
                missing_config="NASA_FIRMS_API_KEY",
            )
        return self.nasa_firms_api_key

    @property
    def ai_classification_enabled(self) -> bool:
        return bool(self.openai_api_key)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Jobs receive the instance explicitly; this accessor is for the API
    layer and the scheduler, which build the jobs.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the global settings instance.

    Useful for testing to ensure clean state between tests.
    """
    global _settings
    _settings = None
