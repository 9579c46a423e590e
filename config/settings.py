"""
Importer settings loaded from environment variables.

Uses pydantic-settings for validation and type safety.
Every variable is prefixed with LIST_IMPORT_ (e.g. LIST_IMPORT_SITE_URL).
CLI flags override these values per run.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    """
    Importer settings.

    All values loaded from .env file or environment variables.
    Validation happens automatically on load.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIST_IMPORT_",
        env_file=(".env", "../.env"),  # Check current dir, then parent
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"  # Ignore extra env vars
    )

    # ===================
    # DESTINATION
    # ===================
    site_url: Optional[str] = Field(
        None,
        description="Destination project URL"
    )
    api_key: Optional[str] = Field(
        None,
        description="Application key used for item creation"
    )
    service_key: Optional[str] = Field(
        None,
        description="Privileged key, required to overwrite timestamps"
    )
    list_name: Optional[str] = Field(
        None,
        description="Target table name"
    )
    id_field: str = Field(
        default="id",
        description="Primary key column returned on insert"
    )
    title_field: str = Field(
        default="Title",
        description="Primary display column, never left empty"
    )
    title_prefix: str = Field(
        default="Import_",
        description="Prefix for synthesized titles"
    )
    schema_rpc: str = Field(
        default="list_fields",
        description="Database function returning the table's field descriptors"
    )
    timestamp_rpc: str = Field(
        default="overwrite_item_timestamps",
        description="Privileged database function overwriting created/modified"
    )

    # ===================
    # SOURCE FILE
    # ===================
    source_path: Optional[str] = Field(
        None,
        description="Delimited source file"
    )
    csv_delimiter: str = Field(
        default=",",
        min_length=1,
        max_length=1,
        description="Field delimiter of the source file"
    )
    csv_encoding: str = Field(
        default="utf-8-sig",
        description="Source file encoding"
    )
    column_map: dict[str, str] = Field(
        default_factory=dict,
        description="Source header -> destination field (JSON object)"
    )

    # ===================
    # IMPORT BEHAVIOUR
    # ===================
    preserve_dates: bool = Field(
        default=False,
        description="Overwrite Created/Modified from the source after creation"
    )
    trim_choice_values: bool = Field(
        default=False,
        description="Trim single-choice values before matching"
    )
    test_run: bool = Field(
        default=False,
        description="Import only the first test_run_limit rows"
    )
    test_run_limit: int = Field(
        default=100,
        ge=1,
        description="Row limit for test runs"
    )
    validate_only: bool = Field(
        default=False,
        description="Map rows and report warnings without writing"
    )

    # ===================
    # THROTTLING
    # ===================
    batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Records per remote insert"
    )
    sleep_every: int = Field(
        default=10,
        ge=0,
        description="Rest after every N batches (0 disables resting)"
    )
    sleep_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Rest duration in seconds"
    )
    max_retries: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Attempts per batch when rate limited"
    )
    backoff_base_seconds: float = Field(
        default=2.0,
        ge=0,
        description="First backoff wait when rate limited"
    )
    backoff_max_seconds: float = Field(
        default=60.0,
        ge=0,
        description="Upper bound for a single backoff wait"
    )

    # ===================
    # APP SETTINGS
    # ===================
    environment: str = Field(
        default="development",
        pattern="^(development|staging|production)$",
        description="Application environment"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Logging level"
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, value):
        if isinstance(value, str):
            return value.upper()
        return value

    # ===================
    # COMPUTED PROPERTIES
    # ===================
    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def timestamps_configured(self) -> bool:
        """Check if the privileged key needed for timestamp overwrite is set."""
        return bool(self.service_key)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload.

    Returns:
        Settings: Importer settings

    Raises:
        ValidationError: If env vars are invalid
    """
    return Settings()
