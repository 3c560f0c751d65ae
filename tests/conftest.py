import functools
import logging
from collections.abc import Callable
from types import SimpleNamespace
from typing import Any

import pytest
import structlog
from pydantic import BaseModel, Field

from configchain import ChainEntry, ChainRegistry, ConfigMigrator, build_migration_chain


class ConfigV1(BaseModel):
    """First released config schema."""

    name: str
    timeout: int


class ConfigV2(BaseModel):
    """Adds retries."""

    name: str
    timeout: int
    retries: int

    @classmethod
    def from_previous(cls, prev: ConfigV1) -> "ConfigV2":
        return cls(name=prev.name, timeout=prev.timeout, retries=4)


class ConfigV5(BaseModel):
    """Renames timeout and adds tags."""

    name: str
    timeout_seconds: int
    retries: int
    tags: list[str] = Field(default_factory=list)


def upgrade_v2_to_v5(prev: ConfigV2) -> ConfigV5:
    return ConfigV5(name=prev.name, timeout_seconds=prev.timeout, retries=prev.retries)


@functools.total_ordering
class ReleaseVersion:
    """Version class pydantic can't build a schema for."""

    def __init__(self, number: int):
        self.number = number

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ReleaseVersion):
            return NotImplemented
        return self.number == other.number

    def __lt__(self, other: "ReleaseVersion") -> bool:
        if not isinstance(other, ReleaseVersion):
            return NotImplemented
        return self.number < other.number

    def __hash__(self) -> int:
        return hash(self.number)

    def __repr__(self) -> str:
        return f"ReleaseVersion({self.number})"


@pytest.fixture
def schemas() -> SimpleNamespace:
    """Provide the sample schema classes."""
    return SimpleNamespace(
        ConfigV1=ConfigV1,
        ConfigV2=ConfigV2,
        ConfigV5=ConfigV5,
        upgrade_v2_to_v5=upgrade_v2_to_v5,
        ReleaseVersion=ReleaseVersion,
    )


@pytest.fixture
def two_version_chain() -> ChainRegistry:
    """Chain of ConfigV1 = 1 and ConfigV2 = 2."""
    return build_migration_chain((ConfigV1, 1), (ConfigV2, 2))


@pytest.fixture
def app_chain() -> ChainRegistry:
    """Chain of ConfigV1 = 1, ConfigV2 = 2 and ConfigV5 = 5."""
    return build_migration_chain((ConfigV1, 1), (ConfigV2, 2), (ConfigV5, 5, upgrade_v2_to_v5))


@pytest.fixture
def release_chain() -> ChainRegistry:
    """Chain of ConfigV1 and ConfigV2 keyed by ReleaseVersion instances."""
    return build_migration_chain((ConfigV1, ReleaseVersion(1)), (ConfigV2, ReleaseVersion(2)))


@pytest.fixture
def migrator(app_chain: ChainRegistry) -> ConfigMigrator:
    """Provide a TOML migrator over the sample chain."""
    return ConfigMigrator("version", app_chain)


@pytest.fixture
def recording_chain() -> Callable[[int], tuple[ChainRegistry, list[Any]]]:
    """Build chains of dict schemas whose conversions record each call.

    Versions are spaced by ten so positions and versions never coincide.
    """

    def factory(length: int) -> tuple[ChainRegistry, list[Any]]:
        calls: list[Any] = []

        def make_convert(version: int) -> Callable[[dict], dict]:
            def convert(prev: dict) -> dict:
                calls.append(version)
                return {**prev, "steps": [*prev.get("steps", []), version]}

            return convert

        entries = [
            ChainEntry(dict[str, Any], (position + 1) * 10, make_convert((position + 1) * 10))
            for position in range(length)
        ]
        return ChainRegistry(entries), calls

    return factory


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo logging setup done by the CLI between tests."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    root_logger.handlers[:] = handlers
    root_logger.setLevel(level)
    structlog.reset_defaults()
