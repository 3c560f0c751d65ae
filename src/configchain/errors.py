"""Exception types raised by configchain.

Construction errors are raised while building a ChainRegistry; a failed
construction never yields a registry. Migration errors are raised by a single
ConfigMigrator call and leave nothing behind.
"""

from typing import Any


class ConfigChainError(Exception):
    """Base class for every configchain error."""


class ChainConstructionError(ConfigChainError, ValueError):
    """The declared chain cannot be turned into a registry."""


class EmptyChainError(ChainConstructionError):
    """No versions were declared."""

    def __init__(self) -> None:
        super().__init__("A migration chain needs at least one version")


class OutOfOrderVersionsError(ChainConstructionError):
    """Two successive versions are not strictly increasing."""

    def __init__(self, previous: Any, current: Any) -> None:
        self.previous = previous
        self.current = current
        super().__init__(
            f"Version {current!r} is declared after {previous!r}; "
            "versions must be declared in strictly increasing order"
        )


class DuplicateVersionError(ChainConstructionError):
    """A version identifier appears more than once."""

    def __init__(self, version: Any) -> None:
        self.version = version
        super().__init__(f"Version {version!r} is declared more than once")


class MissingConversionError(ChainConstructionError):
    """A non-first version has no way to convert from its predecessor."""

    def __init__(self, version: Any) -> None:
        self.version = version
        super().__init__(
            f"Version {version!r} has no conversion from the previous version; "
            "pass a convert function or define a from_previous classmethod"
        )


class UnsupportedSchemaError(ChainConstructionError):
    """A version's schema is not a type pydantic can validate."""

    def __init__(self, version: Any, schema: Any, cause: BaseException) -> None:
        self.version = version
        self.schema = schema
        self.cause = cause
        super().__init__(f"Schema {schema!r} for version {version!r} is not supported: {cause}")


class MigrationError(ConfigChainError):
    """A document could not be migrated to the latest schema."""


class ParseFailedError(MigrationError):
    """The raw text is not a valid structured document."""

    def __init__(self, cause: BaseException | str) -> None:
        self.cause = cause
        super().__init__(f"Could not parse configuration document: {cause}")


class MissingVersionFieldError(MigrationError):
    """The document has no version field."""

    def __init__(self, version_key: str) -> None:
        self.version_key = version_key
        super().__init__(f"Configuration document has no '{version_key}' field")


class InvalidVersionValueError(MigrationError):
    """The version field holds a value of the wrong shape."""

    def __init__(self, version_key: str, value: Any) -> None:
        self.version_key = version_key
        self.value = value
        super().__init__(f"Invalid value for '{version_key}': {value!r}")


class UnknownVersionError(MigrationError):
    """The detected version is not registered in the chain."""

    def __init__(self, version: Any) -> None:
        self.version = version
        super().__init__(f"Unknown config version: {version!r}")


class SchemaDeserializeError(MigrationError):
    """The document fields do not satisfy the detected version's schema."""

    def __init__(self, version: Any, cause: BaseException) -> None:
        self.version = version
        self.cause = cause
        super().__init__(f"Configuration does not match schema for version {version!r}: {cause}")


class ConversionFailedError(MigrationError):
    """A conversion step rejected the value produced by the previous step."""

    def __init__(self, at_version: Any, cause: BaseException) -> None:
        self.at_version = at_version
        self.cause = cause
        super().__init__(f"Conversion to version {at_version!r} failed: {cause}")
