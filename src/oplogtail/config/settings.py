"""
Centralized configuration management for oplogtail.

Uses Pydantic Settings for validation and environment variable loading.
Loads from .env file if present, falls back to environment variables, then defaults.
"""
from typing import Any, Dict, Mapping, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..oplog import OplogOptions


class MongoSettings(BaseSettings):
    """MongoDB connection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONGO_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    uri: str = Field(
        default="mongodb://localhost:27017",
        description="MongoDB connection URI of a replica set member"
    )

    # Connection settings
    connect_timeout: int = Field(default=10, description="Connection timeout in seconds")
    server_selection_timeout: int = Field(default=10, description="Server selection timeout in seconds")
    direct_connection: bool = Field(
        default=False,
        description="Connect to the given host only, without replica set discovery"
    )

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``pymongo.MongoClient``."""
        return {
            "connectTimeoutMS": self.connect_timeout * 1000,
            "serverSelectionTimeoutMS": self.server_selection_timeout * 1000,
            "directConnection": self.direct_connection,
        }


class OplogSettings(BaseSettings):
    """Oplog cursor configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OPLOG_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    database: str = Field(default="local", description="Database holding the oplog")
    collection: str = Field(default="oplog.rs", description="Oplog collection name")
    max_await_time_ms: Optional[int] = Field(
        default=None,
        description="How long the server waits for new records before returning an empty batch"
    )
    batch_size: Optional[int] = Field(default=None, description="Cursor batch size")
    reopen_interval: float = Field(
        default=1.0,
        description="Seconds to wait before reopening a cursor the server has closed"
    )

    @field_validator("max_await_time_ms", "batch_size")
    @classmethod
    def validate_positive(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator("reopen_interval")
    @classmethod
    def validate_reopen_interval(cls, v: float) -> float:
        if v < 0:
            raise ValueError("reopen_interval must be non-negative")
        return v

    def to_options(self, filter: Optional[Mapping[str, Any]] = None) -> OplogOptions:
        """Build ``OplogOptions`` from these settings and an optional filter."""
        return OplogOptions(
            filter=filter,
            database=self.database,
            collection=self.collection,
            max_await_time_ms=self.max_await_time_ms,
            batch_size=self.batch_size,
            reopen_interval=self.reopen_interval,
        )


class LoggingSettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(default="INFO", description="Log level name")
    json_format: bool = Field(default=True, description="Emit JSON structured logs")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()


class Settings(BaseSettings):
    """Main application settings combining all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    mongo: MongoSettings = Field(default_factory=MongoSettings)
    oplog: OplogSettings = Field(default_factory=OplogSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance (singleton pattern)."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
