"""Configuration migration along a version chain."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from configchain.document import Parser, VersionedDocument, resolve_parser
from configchain.errors import ConversionFailedError, SchemaDeserializeError, UnknownVersionError
from configchain.registry import ChainNode, ChainRegistry
from configchain.settings import MigratorConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MigrationResult:
    """Outcome of migrating one document.

    Attributes:
        value: Value of the latest schema
        source_version: Version detected in the input document
        target_version: Version of the latest schema
        applied_versions: Versions whose conversions ran, in order
    """

    value: Any
    source_version: Any
    target_version: Any
    applied_versions: tuple[Any, ...] = ()

    @property
    def migrated(self) -> bool:
        """Whether the document was written against an older version."""
        return self.source_version != self.target_version


class ConfigMigrator:
    """Detects a document's version and migrates it to the latest schema.

    The migrator only holds its version key, parser and registry, so a single
    instance can serve any number of calls, from any number of threads.
    """

    def __init__(
        self,
        version_key: str,
        registry: ChainRegistry,
        parser: str | Parser = "toml",
    ):
        """Initialize ConfigMigrator.

        Args:
            version_key: Name of the document field holding the version
            registry: Chain of schema versions to migrate along
            parser: Format name ("toml", "yaml", "json") or parser callable
        """
        if not isinstance(version_key, str) or not version_key.strip():
            raise ValueError("version_key must be a non-empty string")

        self.version_key = version_key
        self.registry = registry
        self.parser = resolve_parser(parser)

    @classmethod
    def from_config(cls, registry: ChainRegistry, config: MigratorConfig) -> "ConfigMigrator":
        """Create a migrator from MigratorConfig settings."""
        return cls(config.version_key, registry, parser=config.document_format)

    def migrate_config(self, raw_text: str) -> MigrationResult:
        """Parse raw text and migrate it to the latest schema.

        Args:
            raw_text: Configuration document text

        Returns:
            MigrationResult: Latest schema value and the detected version

        Raises:
            ParseFailedError: If the text can't be parsed
            MissingVersionFieldError: If the document has no version field
            InvalidVersionValueError: If the version field has the wrong shape
            UnknownVersionError: If the version isn't registered
            SchemaDeserializeError: If the fields don't match the version's schema
            ConversionFailedError: If a conversion step raises
        """
        document = VersionedDocument.from_text(raw_text, self.version_key, self.parser)
        return self.migrate_document(document)

    def migrate_mapping(self, data: Mapping[str, Any]) -> MigrationResult:
        """Migrate an already parsed configuration mapping."""
        return self.migrate_document(VersionedDocument(self.version_key, data))

    def migrate_document(self, document: VersionedDocument) -> MigrationResult:
        """Migrate a parsed document to the latest schema.

        Args:
            document: Parsed configuration document

        Returns:
            MigrationResult: Latest schema value and the detected version
        """
        if document.version_key != self.version_key:
            document = VersionedDocument(self.version_key, document.fields)

        source_version = document.detected_version(
            self.registry.version_type, self.registry.version_adapter
        )

        node = self.registry.find_node(source_version)
        if node is None:
            raise UnknownVersionError(source_version)

        value = self._deserialize(node, document)
        value, applied = self._migrate_to_latest(node, value)

        latest = self.registry.latest
        if applied:
            logger.info(
                "Migrated configuration from version %r to %r", source_version, latest.version
            )

        return MigrationResult(
            value=value,
            source_version=source_version,
            target_version=latest.version,
            applied_versions=applied,
        )

    def dump_latest(self, result: MigrationResult) -> dict[str, Any]:
        """Convert a result back into a plain mapping tagged with the latest version.

        Args:
            result: Result of a previous migration

        Returns:
            dict: JSON-compatible fields of the latest schema, version field first

        Raises:
            TypeError: If the latest schema doesn't serialize to a mapping
        """
        latest = self.registry.latest
        data = latest.adapter.dump_python(result.value, mode="json")
        if not isinstance(data, dict):
            raise TypeError(f"Schema {latest.name} does not serialize to a mapping")
        return {self.version_key: latest.version, **data}

    def _deserialize(self, node: ChainNode, document: VersionedDocument) -> Any:
        """Validate the document fields into the node's schema."""
        logger.debug("Deserializing configuration as %s (version %r)", node.name, node.version)
        try:
            return node.deserialize(document.schema_fields())
        except ValidationError as e:
            raise SchemaDeserializeError(node.version, e) from e

    def _migrate_to_latest(self, node: ChainNode, value: Any) -> tuple[Any, tuple[Any, ...]]:
        """Apply every conversion after node, in chain order.

        Returns:
            tuple: Latest schema value and the versions whose conversions ran
        """
        applied = []
        for step in self.registry.upgrade_path(node.version):
            logger.debug("Converting configuration to %s (version %r)", step.name, step.version)
            try:
                value = step.convert_from_previous(value)
            except Exception as e:
                raise ConversionFailedError(step.version, e) from e
            applied.append(step.version)

        return value, tuple(applied)
