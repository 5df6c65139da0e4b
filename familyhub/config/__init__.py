"""Configuration package."""

from familyhub.config.settings import (
    GeminiSettings,
    GoogleSheetsSettings,
    LocalStorageSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "GeminiSettings",
    "GoogleSheetsSettings",
    "LocalStorageSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
