"""Logging configuration settings."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Where pagination logs go and how they look.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=DEBUG, LOG_JSON_LOGS=false, LOG_FILE_PATH=/var/log/pager.log
    """

    service_name: str = Field(
        default="pager-service",
        min_length=1,
        max_length=100,
        description="Value of the service field on JSON records",
    )
    level: LogLevel = Field(default="INFO", description="Root logger level")
    json_logs: bool = Field(default=True, description="JSON Lines output (false for plain text)")
    console_enabled: bool = Field(default=True, description="Write records to stderr")
    file_path: Path | None = Field(default=None, description="Rotating log file (unset for none)")
    file_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        ge=1024,
        description="Rotate the log file after this many bytes",
    )
    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Rotated files kept next to the log file",
    )
    capture_warnings: bool = Field(default=True, description="Route warnings.warn() through logging")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @field_validator("level", mode="before")
    @classmethod
    def uppercase_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v

    @computed_field
    @property
    def level_int(self) -> int:
        """Numeric level, as the logging module expects it."""
        return logging.getLevelNamesMapping()[self.level]
