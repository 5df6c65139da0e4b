"""
Configuration Management for FamilyHub

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The remote store is optional infrastructure: when its settings are
missing the application runs entirely on the local cache.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class LocalStorageSettings(BaseSettings):
    """Device-local key-value storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="FAMILYHUB_LOCAL_",
        extra="ignore"
    )

    data_dir: Path = Field(
        default=Path(".familyhub"),
        description="Directory holding one blob file per collection"
    )
    quota_bytes: int = Field(
        default=5 * 1024 * 1024,
        ge=1024,
        description="Total bytes the local storage may hold"
    )


class GoogleSheetsSettings(BaseSettings):
    """
    Remote table storage configuration.

    Both fields must be set for the remote store to be used.
    """

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: Optional[str] = Field(
        default=None,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: Optional[str] = Field(
        default=None,
        description="ID of the spreadsheet holding one worksheet per collection"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: Optional[str]) -> Optional[str]:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if v and not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "The remote store will be unavailable until it exists."
            )
        return v

    @property
    def is_configured(self) -> bool:
        """True when a remote endpoint is configured for this process."""
        return bool(self.credentials_path and self.spreadsheet_id)


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration for meal and place suggestions."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: Optional[str] = Field(
        default=None,
        description="Gemini API key (suggestions are disabled without it)"
    )
    model_name: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=2048,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Model temperature"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    debug_mode: bool = Field(
        default=False,
        description="Enable debug logging"
    )

    @property
    def local(self) -> LocalStorageSettings:
        return LocalStorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Report which parts of the configuration are usable.

    Returns a dict of {setting_name: is_valid}, plus an
    ``<name>_error`` entry for every part that failed to load.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.local
        results["local"] = True
    except Exception as e:
        results["local"] = False
        results["local_error"] = str(e)

    try:
        results["google_sheets"] = settings.google_sheets.is_configured
    except Exception as e:
        results["google_sheets"] = False
        results["google_sheets_error"] = str(e)

    try:
        results["gemini"] = settings.gemini.api_key is not None
    except Exception as e:
        results["gemini"] = False
        results["gemini_error"] = str(e)

    return results
