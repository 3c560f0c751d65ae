"""CLI wrapper for configuration migration.

This script provides command-line access to ConfigMigrator: it reads a
configuration file written against any version of a migration chain and
prints (or writes) the equivalent document for the latest version.
"""

import importlib
import json
import shutil
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from pydantic import ValidationError

from configchain.errors import MigrationError
from configchain.migrator import ConfigMigrator
from configchain.registry import ChainRegistry
from configchain.settings import LoggingConfig, MigratorConfig
from configchain.structlog_configurator import configure_structlog, get_logger

logger = get_logger(__name__)

FORMAT_BY_SUFFIX = {
    ".toml": "toml",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".json": "json",
}


def load_registry(reference: str) -> ChainRegistry:
    """Import a ChainRegistry from a 'module:attribute' reference.

    Args:
        reference: Dotted module path and attribute name, e.g. "myapp.config:CHAIN"

    Returns:
        ChainRegistry: The referenced registry

    Raises:
        click.BadParameter: If the reference can't be resolved to a registry
    """
    module_name, _, attribute = reference.partition(":")
    if not module_name or not attribute:
        raise click.BadParameter(
            f"'{reference}' is not of the form module:attribute", param_hint="--chain"
        )

    try:
        # Safe: the module is named explicitly by the user running the tool
        module = importlib.import_module(module_name)  # nosemgrep
    except ImportError as e:
        raise click.BadParameter(
            f"Could not import module '{module_name}': {e}", param_hint="--chain"
        ) from e

    registry = getattr(module, attribute, None)
    if not isinstance(registry, ChainRegistry):
        raise click.BadParameter(
            f"'{reference}' is not a ChainRegistry", param_hint="--chain"
        )
    return registry


def _registry_callback(ctx: click.Context, param: click.Parameter, value: str) -> ChainRegistry:
    return load_registry(value)


def _detect_format(config_file: Path, document_format: str | None) -> str:
    """Pick the input format from the option or the file extension."""
    if document_format:
        return document_format
    return FORMAT_BY_SUFFIX.get(config_file.suffix.lower(), "toml")


def _render(data: dict[str, Any], output_format: str) -> str:
    """Render a migrated document as YAML or JSON text."""
    if output_format == "json":
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"
    return yaml.dump(data, default_flow_style=False, sort_keys=False)


def _write_with_backup(output_path: Path, text: str) -> None:
    """Write text to output_path, keeping a backup of any existing file."""
    output_path.parent.mkdir(parents=True, exist_ok=True)

    if output_path.exists():
        backup_path = output_path.with_suffix(output_path.suffix + ".backup")
        try:
            shutil.copy2(output_path, backup_path)
        except PermissionError:
            logger.warning("Could not create backup", backup_path=str(backup_path))

    output_path.write_text(text)
    logger.info("Migrated configuration written", path=str(output_path))


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    show_default=True,
    help="Logging level (DEBUG, INFO, WARNING, ERROR)",
)
@click.option(
    "--json-logs/--console-logs",
    default=None,
    help="Force JSON or human-readable log output (default: auto-detect)",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, json_logs: bool | None) -> None:
    """Configuration migration tools.

    Migrate configuration files along a chain of schema versions declared in
    a Python module.

    Examples:
      # Print the latest-version document for an old config file
      configchain migrate settings.toml --chain myapp.config:CHAIN

      # Migrate a YAML config in place (the original is kept as .backup)
      configchain migrate settings.yaml --chain myapp.config:CHAIN --output settings.yaml

      # Show the registered versions
      configchain versions --chain myapp.config:CHAIN
    """
    try:
        logging_config = LoggingConfig(level=log_level, json_logs=json_logs)
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="--log-level") from e

    configure_structlog(logging_config)

    ctx.ensure_object(dict)
    ctx.obj["logging_config"] = logging_config


@cli.command()
@click.argument("config_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--chain",
    "registry",
    required=True,
    callback=_registry_callback,
    help="Migration chain as module:attribute",
)
@click.option(
    "--version-key",
    default="version",
    show_default=True,
    help="Document field holding the config version",
)
@click.option(
    "--format",
    "document_format",
    type=click.Choice(sorted(set(FORMAT_BY_SUFFIX.values()))),
    help="Input format (default: from the file extension, else toml)",
)
@click.option(
    "--output-format",
    type=click.Choice(["yaml", "json"]),
    default="yaml",
    show_default=True,
    help="Format of the migrated document",
)
@click.option(
    "--output",
    "output_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the migrated document here instead of stdout",
)
@click.pass_obj
def migrate(
    obj: dict[str, Any],
    config_file: Path,
    registry: ChainRegistry,
    version_key: str,
    document_format: str | None,
    output_format: str,
    output_path: Path | None,
) -> None:
    """Migrate CONFIG_FILE to the latest version of the chain.

    CONFIG_FILE: Configuration file written against any registered version
    """
    try:
        config = MigratorConfig(
            version_key=version_key,
            document_format=_detect_format(config_file, document_format),
            logging=obj["logging_config"],
        )
    except ValidationError as e:
        raise click.BadParameter(str(e), param_hint="--version-key") from e

    migrator = ConfigMigrator.from_config(registry, config)

    try:
        result = migrator.migrate_config(config_file.read_text())
    except MigrationError as e:
        logger.error("Migration failed", path=str(config_file), error=str(e))
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    logger.info(
        "Configuration migrated",
        path=str(config_file),
        source_version=result.source_version,
        target_version=result.target_version,
        migrated=result.migrated,
    )

    try:
        text = _render(migrator.dump_latest(result), output_format)
    except (TypeError, ValueError) as e:
        logger.error("Could not render configuration", path=str(config_file), error=str(e))
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    if output_path is None:
        click.echo(text, nl=False)
        return

    _write_with_backup(output_path, text)
    if result.migrated:
        click.echo(
            click.style(
                f"Migrated {config_file} from version {result.source_version} "
                f"to {result.target_version}",
                fg="green",
            ),
            err=True,
        )
    else:
        click.echo(f"{config_file} is already at version {result.target_version}", err=True)


@cli.command()
@click.option(
    "--chain",
    "registry",
    required=True,
    callback=_registry_callback,
    help="Migration chain as module:attribute",
)
def versions(registry: ChainRegistry) -> None:
    """List the versions of a migration chain, oldest first."""
    click.echo(f"Migration chain ({len(registry)} versions):")
    click.echo()

    for node in registry:
        line = f"  {node.position}: {node.version} ({node.name})"
        if node is registry.latest:
            click.echo(click.style(f"{line} [latest]", fg="green"))
        else:
            click.echo(line)


def main() -> None:
    """Entry point for the configuration migration CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
