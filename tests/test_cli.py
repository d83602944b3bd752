"""Tests for the hotwire CLI commands."""

import sys
from pathlib import Path

import pytest
from click.testing import CliRunner

from hotwire.cli import cli, resolve_config


@pytest.fixture
def project(tmp_path: Path, monkeypatch):
    """A project directory with a pyproject.toml and one package."""
    src = tmp_path / "src"
    package = src / "cliapp"
    package.mkdir(parents=True)
    (package / "__init__.py").write_text("")
    (package / "views.py").write_text("NAME = 'views'\n")
    (tmp_path / "pyproject.toml").write_text('[tool.hotwire]\ndirs = ["src"]\n')

    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(sys, "dont_write_bytecode", True)
    monkeypatch.setattr(sys, "path", list(sys.path))
    yield tmp_path

    for name in [n for n in sys.modules if n.split(".")[0] == "cliapp"]:
        del sys.modules[name]


class TestResolveConfig:
    """Tests for merging command line overrides into the config."""

    def test_no_overrides(self, project):
        config = resolve_config("pyproject.toml", ())

        assert config.dirs == ["src"]
        assert config.cooldown_ms == 100

    def test_overrides_win(self, project):
        config = resolve_config("pyproject.toml", ("lib",), cooldown_ms=5)

        assert config.dirs == ["lib"]
        assert config.cooldown_ms == 5


class TestNamespacesCommand:
    """Tests for the namespaces command."""

    def test_lists_modules(self, project):
        result = CliRunner().invoke(cli, ["namespaces"])

        assert result.exit_code == 0
        assert "cliapp" in result.output
        assert "cliapp.views" in result.output

    def test_pattern_filters(self, project):
        result = CliRunner().invoke(cli, ["namespaces", r"cliapp\.v.*"])

        assert result.exit_code == 0
        assert "cliapp.views" in result.output

    def test_no_match(self, project):
        result = CliRunner().invoke(cli, ["namespaces", "nothing"])

        assert result.exit_code == 0
        assert "No matching modules" in result.output


class TestReloadCommand:
    """Tests for the reload command."""

    def test_reloads_imported_modules(self, project):
        result = CliRunner().invoke(cli, ["reload", "--import", "cliapp.views"])

        assert result.exit_code == 0, result.output
        assert "cliapp.views" in result.output
        assert "True" in result.output

    def test_failure_exits_nonzero(self, project):
        runner = CliRunner()
        assert runner.invoke(cli, ["reload", "--import", "cliapp.views"]).exit_code == 0

        (project / "src" / "cliapp" / "views.py").write_text("NAME = (\n")
        # Still imported from the first run, so the pattern pass picks it up
        result = runner.invoke(cli, ["reload", "--only", r"cliapp\.views"])

        assert result.exit_code == 1
        assert "False" in result.output

    def test_help(self):
        result = CliRunner().invoke(cli, ["reload", "--help"])

        assert result.exit_code == 0
        assert "--only" in result.output
