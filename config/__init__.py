"""
Configuration module.

Exports:
    settings: Engine settings instance
    get_settings: Function to get settings (cached)
    Settings: Settings class
"""

from config.settings import settings, get_settings, Settings

__all__ = [
    "settings",
    "get_settings",
    "Settings",
]
