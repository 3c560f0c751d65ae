"""Registry of configuration schema versions and the conversions between them."""

import logging
from collections.abc import Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import TypeAdapter
from pydantic.errors import PydanticSchemaGenerationError

from configchain.errors import (
    DuplicateVersionError,
    EmptyChainError,
    MissingConversionError,
    OutOfOrderVersionsError,
    UnknownVersionError,
    UnsupportedSchemaError,
)

logger = logging.getLogger(__name__)

Converter = Callable[[Any], Any]


@dataclass(frozen=True)
class ChainEntry:
    """Declaration of one schema version.

    Attributes:
        schema: Type describing this version's fields (without the version field)
        version: Version identifier, comparable with the other versions
        convert: Function building this version's value from the previous one.
            Ignored for the first entry. When omitted, the schema's own
            from_previous classmethod is used.
    """

    schema: Any
    version: Any
    convert: Converter | None = None


@dataclass(frozen=True)
class ChainNode:
    """One registered version at a fixed position in the chain."""

    schema: Any
    version: Any
    position: int
    convert: Converter | None = None
    adapter: TypeAdapter | None = field(default=None, compare=False, repr=False)

    @property
    def name(self) -> str:
        """Display name of the schema."""
        return getattr(self.schema, "__name__", repr(self.schema))

    @property
    def is_first(self) -> bool:
        """Whether this is the oldest registered version."""
        return self.position == 0

    def deserialize(self, fields: Mapping[str, Any]) -> Any:
        """Validate raw document fields into this version's schema.

        Raises:
            pydantic.ValidationError: If the fields don't match the schema
        """
        adapter = self.adapter or TypeAdapter(self.schema)
        return adapter.validate_python(fields)

    def convert_from_previous(self, value: Any) -> Any:
        """Apply this node's conversion to the previous node's value."""
        if self.convert is None:
            raise RuntimeError(f"Version {self.version!r} is the first version of its chain")
        return self.convert(value)


def _as_entry(declaration: ChainEntry | tuple) -> ChainEntry:
    if isinstance(declaration, ChainEntry):
        return declaration
    if isinstance(declaration, tuple) and len(declaration) in (2, 3):
        return ChainEntry(*declaration)
    raise TypeError(
        "Chain entries must be ChainEntry instances or (schema, version[, convert]) tuples, "
        f"got {declaration!r}"
    )


def _schema_adapter(entry: ChainEntry) -> TypeAdapter:
    try:
        return TypeAdapter(entry.schema)
    except PydanticSchemaGenerationError as e:
        raise UnsupportedSchemaError(entry.version, entry.schema, e) from e


def _default_conversion(schema: Any) -> Converter | None:
    # Only a from_previous defined on the schema itself counts: an inherited
    # one converts from the parent's predecessor, not from ours.
    if isinstance(schema, type) and "from_previous" in vars(schema):
        return getattr(schema, "from_previous")
    return None


class ChainRegistry:
    """Ordered, immutable chain of schema versions.

    Versions must be declared oldest first. Positions are assigned in
    declaration order and the last declared version is the latest one.
    """

    def __init__(self, entries: Iterable[ChainEntry | tuple]):
        """Build and validate the chain.

        Args:
            entries: Version declarations in ascending chain order

        Raises:
            EmptyChainError: If no entries are given
            DuplicateVersionError: If a version is declared twice
            OutOfOrderVersionsError: If versions are not strictly increasing
            MissingConversionError: If a non-first version has no conversion
            UnsupportedSchemaError: If pydantic can't build a schema for a version's type
        """
        nodes: list[ChainNode] = []
        index: dict[Any, ChainNode] = {}

        for position, declaration in enumerate(entries):
            entry = _as_entry(declaration)

            if not nodes:
                node = ChainNode(
                    entry.schema, entry.version, position, adapter=_schema_adapter(entry)
                )
            else:
                previous = nodes[-1].version
                if entry.version in index:
                    raise DuplicateVersionError(entry.version)
                if not self._is_ascending(previous, entry.version):
                    raise OutOfOrderVersionsError(previous, entry.version)

                convert = entry.convert or _default_conversion(entry.schema)
                if convert is None:
                    raise MissingConversionError(entry.version)
                node = ChainNode(
                    entry.schema, entry.version, position, convert, _schema_adapter(entry)
                )

            nodes.append(node)
            index[node.version] = node

        if not nodes:
            raise EmptyChainError()

        self._nodes = tuple(nodes)
        self._index = index
        self._version_adapter = self._build_version_adapter(self.version_type)

        logger.debug(
            "Built migration chain with %d version(s): %s",
            len(self._nodes),
            ", ".join(f"{node.name}={node.version!r}" for node in self._nodes),
        )

    @staticmethod
    def _build_version_adapter(version_type: type) -> TypeAdapter | None:
        # Version classes without a pydantic schema are matched by type only
        try:
            return TypeAdapter(version_type)
        except PydanticSchemaGenerationError:
            logger.debug("No pydantic schema for version type %s", version_type.__name__)
            return None

    @staticmethod
    def _is_ascending(previous: Any, current: Any) -> bool:
        if type(previous) is not type(current):
            return False
        try:
            return bool(previous < current)
        except TypeError:
            return False

    @property
    def nodes(self) -> tuple[ChainNode, ...]:
        """All nodes in position order."""
        return self._nodes

    @property
    def versions(self) -> tuple[Any, ...]:
        """All version identifiers in position order."""
        return tuple(node.version for node in self._nodes)

    @property
    def oldest(self) -> ChainNode:
        """The first (oldest supported) node."""
        return self._nodes[0]

    @property
    def latest(self) -> ChainNode:
        """The last (current) node."""
        return self._nodes[-1]

    @property
    def version_type(self) -> type:
        """Type shared by every version identifier in the chain."""
        return type(self.oldest.version)

    @property
    def version_adapter(self) -> TypeAdapter | None:
        """Adapter coercing document values to version_type, if pydantic supports it."""
        return self._version_adapter

    def find_node(self, version: Any) -> ChainNode | None:
        """Look up the node registered for a version.

        Args:
            version: Version identifier

        Returns:
            ChainNode | None: The node, or None if the version isn't registered
        """
        try:
            return self._index.get(version)
        except TypeError:
            # Unhashable values can't be registered versions
            return None

    def get_node(self, version: Any) -> ChainNode:
        """Get the node registered for a version.

        Raises:
            UnknownVersionError: If the version isn't registered
        """
        node = self.find_node(version)
        if node is None:
            raise UnknownVersionError(version)
        return node

    def upgrade_path(self, from_version: Any) -> tuple[ChainNode, ...]:
        """Get the nodes whose conversions lead from a version to the latest.

        Args:
            from_version: Starting version

        Returns:
            tuple[ChainNode, ...]: Nodes after from_version, in order. Empty
            when from_version is the latest version.

        Raises:
            UnknownVersionError: If from_version isn't registered
        """
        start = self.get_node(from_version)
        return self._nodes[start.position + 1 :]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[ChainNode]:
        return iter(self._nodes)

    def __contains__(self, version: object) -> bool:
        return self.find_node(version) is not None

    def __repr__(self) -> str:
        return f"ChainRegistry(versions={list(self.versions)!r})"


def build_migration_chain(*entries: ChainEntry | tuple) -> ChainRegistry:
    """Build a registry from version declarations, oldest first.

    Example:
        build_migration_chain((ConfigV1, 1), (ConfigV2, 2, upgrade_v1), (ConfigV3, 3))
    """
    return ChainRegistry(entries)
