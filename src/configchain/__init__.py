"""Versioned configuration migration.

This package loads a configuration document written against any registered
schema version and migrates it to the latest one:
- Ordered, validated chains of schema versions
- Version detection from a configurable document field
- Deserialization into per-version Pydantic-compatible schemas
- TOML, YAML and JSON documents
"""

from .document import VersionedDocument
from .errors import (
    ChainConstructionError,
    ConfigChainError,
    ConversionFailedError,
    DuplicateVersionError,
    EmptyChainError,
    InvalidVersionValueError,
    MigrationError,
    MissingConversionError,
    MissingVersionFieldError,
    OutOfOrderVersionsError,
    ParseFailedError,
    SchemaDeserializeError,
    UnknownVersionError,
    UnsupportedSchemaError,
)
from .migrator import ConfigMigrator, MigrationResult
from .registry import ChainEntry, ChainNode, ChainRegistry, build_migration_chain
from .settings import LoggingConfig, MigratorConfig

__all__ = [
    "ChainConstructionError",
    "ChainEntry",
    "ChainNode",
    "ChainRegistry",
    "ConfigChainError",
    "ConfigMigrator",
    "ConversionFailedError",
    "DuplicateVersionError",
    "EmptyChainError",
    "InvalidVersionValueError",
    "LoggingConfig",
    "MigrationError",
    "MigrationResult",
    "MigratorConfig",
    "MissingConversionError",
    "MissingVersionFieldError",
    "OutOfOrderVersionsError",
    "ParseFailedError",
    "SchemaDeserializeError",
    "UnknownVersionError",
    "UnsupportedSchemaError",
    "VersionedDocument",
    "build_migration_chain",
]
