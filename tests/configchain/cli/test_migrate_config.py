"""Tests for the configuration migration CLI."""

import json
import sys
import textwrap

import click
import pytest
import yaml
from click.testing import CliRunner

from configchain.cli.migrate_config import _detect_format, cli, load_registry
from configchain.registry import ChainRegistry

CHAIN_MODULE = textwrap.dedent(
    """
    from pydantic import BaseModel

    from configchain import build_migration_chain


    class ConfigV1(BaseModel):
        name: str
        timeout: int


    class ConfigV2(BaseModel):
        name: str
        timeout: int
        retries: int


    def upgrade(prev):
        return ConfigV2(name=prev.name, timeout=prev.timeout, retries=4)


    CHAIN = build_migration_chain((ConfigV1, 1), (ConfigV2, 2, upgrade))
    LIST_CHAIN = build_migration_chain((ConfigV1, 1), (list[str], 2, lambda prev: [prev.name]))
    NOT_A_CHAIN = [1, 2]
    """
)


@pytest.fixture
def runner():
    """Create a Click test runner."""
    return CliRunner()


@pytest.fixture
def chain_module(tmp_path, monkeypatch):
    """Write an importable module declaring a migration chain."""
    module_dir = tmp_path / "modules"
    module_dir.mkdir()
    (module_dir / "sample_chain.py").write_text(CHAIN_MODULE)
    monkeypatch.syspath_prepend(str(module_dir))
    monkeypatch.delitem(sys.modules, "sample_chain", raising=False)
    return "sample_chain:CHAIN"


@pytest.fixture
def v1_config(tmp_path):
    """Create a version 1 TOML config file."""
    config_path = tmp_path / "app.toml"
    config_path.write_text('version = 1\nname = "MyApp"\ntimeout = 60\n')
    return config_path


class TestLoadRegistry:
    """Test resolving --chain references."""

    def test_load_registry(self, chain_module):
        """Should import the referenced registry."""
        registry = load_registry(chain_module)

        assert isinstance(registry, ChainRegistry)
        assert registry.versions == (1, 2)

    def test_missing_attribute_separator(self):
        """Should require module:attribute."""
        with pytest.raises(click.BadParameter, match="module:attribute"):
            load_registry("sample_chain")

    def test_unknown_module(self):
        """Should report modules that can't be imported."""
        with pytest.raises(click.BadParameter, match="Could not import module"):
            load_registry("no_such_module_for_configchain:CHAIN")

    def test_not_a_registry(self, chain_module):
        """Should reject attributes that aren't registries."""
        with pytest.raises(click.BadParameter, match="is not a ChainRegistry"):
            load_registry("sample_chain:NOT_A_CHAIN")


class TestFormatDetection:
    """Test input format selection."""

    @pytest.mark.parametrize(
        "filename,expected",
        [("a.toml", "toml"), ("a.yaml", "yaml"), ("a.YML", "yaml"), ("a.json", "json")],
    )
    def test_from_extension(self, tmp_path, filename, expected):
        """Should pick the format from the file extension."""
        assert _detect_format(tmp_path / filename, None) == expected

    def test_unknown_extension_defaults_to_toml(self, tmp_path):
        """Should fall back to TOML."""
        assert _detect_format(tmp_path / "app.conf", None) == "toml"

    def test_option_wins(self, tmp_path):
        """Should prefer an explicit --format."""
        assert _detect_format(tmp_path / "app.toml", "json") == "json"


class TestMigrateCommand:
    """Test the migrate command."""

    def test_migrate_to_stdout(self, runner, chain_module, v1_config):
        """Should print the latest-version document as YAML."""
        result = runner.invoke(cli, ["migrate", str(v1_config), "--chain", chain_module])

        assert result.exit_code == 0, result.output
        assert yaml.safe_load(result.stdout) == {
            "version": 2,
            "name": "MyApp",
            "timeout": 60,
            "retries": 4,
        }

    def test_migrate_json_output(self, runner, chain_module, v1_config):
        """Should print JSON when asked."""
        result = runner.invoke(
            cli,
            ["migrate", str(v1_config), "--chain", chain_module, "--output-format", "json"],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout)["retries"] == 4

    def test_migrate_yaml_input_with_custom_key(self, runner, chain_module, tmp_path):
        """Should read YAML files and custom version keys."""
        config_path = tmp_path / "app.yaml"
        config_path.write_text("config_version: 2\nname: A\ntimeout: 1\nretries: 7\n")

        result = runner.invoke(
            cli,
            [
                "migrate",
                str(config_path),
                "--chain",
                chain_module,
                "--version-key",
                "config_version",
            ],
        )

        assert result.exit_code == 0, result.output
        assert yaml.safe_load(result.stdout) == {
            "config_version": 2,
            "name": "A",
            "timeout": 1,
            "retries": 7,
        }

    def test_migrate_to_file_with_backup(self, runner, chain_module, tmp_path):
        """Should write the output file and back up what was there."""
        config_path = tmp_path / "app.yaml"
        original = "version: 1\nname: MyApp\ntimeout: 60\n"
        config_path.write_text(original)

        result = runner.invoke(
            cli,
            ["migrate", str(config_path), "--chain", chain_module, "--output", str(config_path)],
        )

        assert result.exit_code == 0, result.output
        assert yaml.safe_load(config_path.read_text())["retries"] == 4
        assert (tmp_path / "app.yaml.backup").read_text() == original
        assert "from version 1 to 2" in result.output

    def test_migrate_to_new_file(self, runner, chain_module, v1_config, tmp_path):
        """Should create the output file when it doesn't exist."""
        output_path = tmp_path / "out" / "app.json"

        result = runner.invoke(
            cli,
            [
                "migrate",
                str(v1_config),
                "--chain",
                chain_module,
                "--output",
                str(output_path),
                "--output-format",
                "json",
            ],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(output_path.read_text())["version"] == 2
        assert not (tmp_path / "out" / "app.json.backup").exists()

    def test_already_latest(self, runner, chain_module, tmp_path):
        """Should say when no migration was needed."""
        config_path = tmp_path / "app.toml"
        config_path.write_text('version = 2\nname = "A"\ntimeout = 1\nretries = 0\n')
        output_path = tmp_path / "latest.yaml"

        result = runner.invoke(
            cli,
            ["migrate", str(config_path), "--chain", chain_module, "--output", str(output_path)],
        )

        assert result.exit_code == 0, result.output
        assert "already at version 2" in result.output

    def test_unknown_version_fails(self, runner, chain_module, tmp_path):
        """Should exit with an error for unregistered versions."""
        config_path = tmp_path / "app.toml"
        config_path.write_text('version = 3\nname = "A"\n')

        result = runner.invoke(cli, ["migrate", str(config_path), "--chain", chain_module])

        assert result.exit_code == 1
        assert "Unknown config version: 3" in result.output
        assert result.stdout == ""

    def test_unparsable_file_fails(self, runner, chain_module, tmp_path):
        """Should exit with an error for malformed documents."""
        config_path = tmp_path / "app.toml"
        config_path.write_text("version = = 1")

        result = runner.invoke(cli, ["migrate", str(config_path), "--chain", chain_module])

        assert result.exit_code == 1
        assert "Could not parse configuration document" in result.output

    def test_non_mapping_latest_schema_fails(self, runner, chain_module, v1_config):
        """Should exit with an error when the result can't be written as a mapping."""
        result = runner.invoke(
            cli, ["migrate", str(v1_config), "--chain", "sample_chain:LIST_CHAIN"]
        )

        assert result.exit_code == 1
        assert "does not serialize to a mapping" in result.output
        assert result.stdout == ""
        assert not isinstance(result.exception, TypeError)

    def test_bad_chain_reference(self, runner, v1_config):
        """Should report a usage error for unresolvable chains."""
        result = runner.invoke(cli, ["migrate", str(v1_config), "--chain", "nope"])

        assert result.exit_code == 2
        assert "module:attribute" in result.output

    def test_empty_version_key(self, runner, chain_module, v1_config):
        """Should report a usage error for blank version keys."""
        result = runner.invoke(
            cli, ["migrate", str(v1_config), "--chain", chain_module, "--version-key", " "]
        )

        assert result.exit_code == 2

    def test_invalid_log_level(self, runner, chain_module, v1_config):
        """Should report a usage error for unknown log levels."""
        result = runner.invoke(
            cli, ["--log-level", "LOUD", "migrate", str(v1_config), "--chain", chain_module]
        )

        assert result.exit_code == 2
        assert "Invalid log level" in result.output


class TestVersionsCommand:
    """Test the versions command."""

    def test_lists_versions(self, runner, chain_module):
        """Should list every version and mark the latest."""
        result = runner.invoke(cli, ["versions", "--chain", chain_module])

        assert result.exit_code == 0, result.output
        assert "Migration chain (2 versions)" in result.output
        assert "0: 1 (ConfigV1)" in result.output
        assert "1: 2 (ConfigV2) [latest]" in result.output
