"""Configuration package."""

from transaction_hub.config.settings import (
    AppSettings,
    GeminiSettings,
    GoogleSheetsSettings,
    MindeeSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "GeminiSettings",
    "GoogleSheetsSettings",
    "MindeeSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
