"""Configuration for oplogtail."""

from .settings import Settings, MongoSettings, OplogSettings, LoggingSettings, get_settings, reload_settings

__all__ = [
    "Settings",
    "MongoSettings",
    "OplogSettings",
    "LoggingSettings",
    "get_settings",
    "reload_settings",
]
