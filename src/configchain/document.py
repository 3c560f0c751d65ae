"""Versioned documents and the parsers that produce them.


A VersionedDocument is the format-agnostic view of a configuration file: the
top-level fields as parsed, plus the name of the field holding the schema
version. Parsing is delegated to TOML, YAML or JSON loaders, or to any
callable that turns text into a mapping.
"""

import json
import logging
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import yaml
from pydantic import TypeAdapter, ValidationError

from configchain.errors import (
    InvalidVersionValueError,
    MissingVersionFieldError,
    ParseFailedError,
)

logger = logging.getLogger(__name__)

Parser = Callable[[str], Any]

def _parse_toml(text: str) -> Any:
    return tomllib.loads(text)


def _parse_yaml(text: str) -> Any:
    # An empty YAML file is an empty document, not a parse failure
    return yaml.safe_load(text) or {}


def _parse_json(text: str) -> Any:
    return json.loads(text)

PARSERS: dict[str, Parser] = {
    "toml": _parse_toml,
    "yaml": _parse_yaml,
    "json": _parse_json,
}

def resolve_parser(parser: str | Parser) -> Parser:
    """Return the parser callable for a format name or a custom callable.


    Args:
        parser: One of the names in PARSERS, or a callable taking the raw text

    Returns:
        Parser: Callable turning raw text into a parsed value


    Raises:
        ValueError: If the format name is not known
    """
    if callable(parser):
        return parser
    try:
        return PARSERS[parser.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown document format '{parser}'. Available formats: {sorted(PARSERS)}"
        ) from None


@dataclass(frozen=True)
class VersionedDocument:
    """Parsed configuration document with a designated version field."""

    version_key: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Freeze a private copy so the caller's mapping can't change under us
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    @classmethod
    def from_text(
        cls, text: str, version_key: str, parser: str | Parser = "toml"
    ) -> "VersionedDocument":
        """Parse raw text into a VersionedDocument.

        Args:
            text: Raw configuration text
            version_key: Name of the field holding the version
            parser: Format name ("toml", "yaml", "json") or parser callable

        Returns:
            VersionedDocument: The parsed document

        Raises:
            ParseFailedError: If the text cannot be parsed or is not a mapping
        """
        parse = resolve_parser(parser)
        try:
            data = parse(text)
        except Exception as e:
            raise ParseFailedError(e) from e

        if not isinstance(data, Mapping):
            raise ParseFailedError(
                f"expected a mapping at the top level, got {type(data).__name__}"
            )

        return cls(version_key=version_key, fields=data)

    @property
    def has_version(self) -> bool:
        """Whether the version field is present."""
        return self.version_key in self.fields

    @property
    def raw_version(self) -> Any:
        """The version field exactly as parsed.

        Raises:
            MissingVersionFieldError: If the version field is absent
        """
        if not self.has_version:
            raise MissingVersionFieldError(self.version_key)
        return self.fields[self.version_key]

    def detected_version(self, version_type: type, adapter: TypeAdapter | None = None) -> Any:
        """Read the version field and coerce it to the chain's version type.

        Without an adapter the value must already be a version_type instance,
        which is how chains with version classes pydantic can't build a schema
        for are read.

        Args:
            version_type: Type of the version identifiers in the chain
            adapter: pydantic adapter for version_type, used for lax coercion

        Returns:
            The version identifier, as an instance of version_type

        Raises:
            MissingVersionFieldError: If the version field is absent
            InvalidVersionValueError: If the value can't be read as version_type
        """
        value = self.raw_version

        # pydantic's lax mode would happily read True as 1
        if value is None or (isinstance(value, bool) and version_type is not bool):
            raise InvalidVersionValueError(self.version_key, value)

        if adapter is None:
            if not isinstance(value, version_type):
                raise InvalidVersionValueError(self.version_key, value)
            return value

        try:
            return adapter.validate_python(value)
        except ValidationError as e:
            raise InvalidVersionValueError(self.version_key, value) from e

    def schema_fields(self) -> dict[str, Any]:
        """Return every field except the version field."""
        return {key: value for key, value in self.fields.items() if key != self.version_key}
