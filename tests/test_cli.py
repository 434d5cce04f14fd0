"""Tests for the bundleplan command line."""

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner
from rich.console import Console

from bundleplan import __version__
from bundleplan import cli as cli_module
from bundleplan.cli import cli


@pytest.fixture(autouse=True)
def wide_console(monkeypatch):
    monkeypatch.setattr(cli_module, "console", Console(width=200))


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_show_yaml(runner: CliRunner, project: Path) -> None:
    result = runner.invoke(cli, ["show", "production", "--project", str(project)])
    assert result.exit_code == 0, result.output
    data = yaml.safe_load(result.output)
    assert data["mode"] == "production"
    assert data["optimization"]["minimize"] is True


def test_show_json(runner: CliRunner, project: Path) -> None:
    result = runner.invoke(cli, ["show", "development", "-p", str(project), "--format", "json"])
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["mode"] == "development"
    assert data["optimization"]["stages"] == []


def test_show_profile(runner: CliRunner, project: Path) -> None:
    result = runner.invoke(
        cli, ["show", "production", "-p", str(project), "--format", "json", "--profile"]
    )
    data = json.loads(result.output)
    assert data["resolve"]["alias"]["react-dom$"] == "react-dom/profiling"


def test_rules(runner: CliRunner, project: Path) -> None:
    result = runner.invoke(cli, ["rules", "development", "-p", str(project)])
    assert result.exit_code == 0, result.output
    assert "app-scripts" in result.output
    assert "(fallback)" in result.output
    assert "style-inject" in result.output


def test_plugins(runner: CliRunner, project: Path) -> None:
    result = runner.invoke(cli, ["plugins", "production", "-p", str(project)])
    assert result.exit_code == 0, result.output
    assert "css-extract" in result.output
    assert "fast-refresh" not in result.output


def test_match(runner: CliRunner, project: Path) -> None:
    result = runner.invoke(
        cli,
        ["match", "production", "src/App.module.css", "src/App.js", "public/data.json", "-p", str(project)],
    )
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert "src/App.module.css: css-modules" in lines
    assert "src/App.js: app-scripts" in lines
    assert "public/data.json: (engine default)" in lines


def test_export(runner: CliRunner, project: Path, tmp_path: Path) -> None:
    target = tmp_path / "descriptor.json"
    result = runner.invoke(cli, ["export", "production", str(target), "-p", str(project)])
    assert result.exit_code == 0, result.output
    assert "Descriptor exported" in result.output
    assert json.loads(target.read_text())["mode"] == "production"


def test_missing_template_exits_nonzero(runner: CliRunner, project: Path) -> None:
    (project / "public" / "index.html").unlink()
    result = runner.invoke(cli, ["show", "production", "-p", str(project)])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_invalid_mode(runner: CliRunner, project: Path) -> None:
    result = runner.invoke(cli, ["show", "staging", "-p", str(project)])
    assert result.exit_code == 2


def test_main_entry_point(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        cli_module.main(["--version"])
    assert exc.value.code == 0
    assert __version__ in capsys.readouterr().out
