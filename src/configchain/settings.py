"""Settings models for configchain.

This module contains the Pydantic models used to configure a ConfigMigrator
and the command line tool's logging.
"""

import logging
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DocumentFormat = Literal["toml", "yaml", "json"]


class LoggingConfig(BaseModel):
    """Structlog-based logging configuration."""

    level: str = "WARNING"
    json_logs: bool | None = None  # None = auto-detect based on environment
    include_caller: bool = False  # Include file:line info (useful for debugging)
    extra_fields: dict[str, str] = Field(default_factory=dict)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate the level against the standard logging level names."""
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(
                f"Invalid log level '{v}'. "
                f"Must be one of: {', '.join(sorted(logging.getLevelNamesMapping()))}"
            )
        return level


class MigratorConfig(BaseModel):
    """Settings for a ConfigMigrator."""

    version_key: str = "version"  # Document field holding the schema version
    document_format: DocumentFormat = "toml"

    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("version_key")
    @classmethod
    def validate_version_key(cls, v: str) -> str:
        """Reject empty version keys."""
        if not v.strip():
            raise ValueError("version_key must not be empty")
        return v
