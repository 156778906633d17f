"""Tests for the command-line interface."""

import json
import sys

import pytest
from typer.testing import CliRunner

from multigit.cli import app
from multigit.config import Registry

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path):
    return tmp_path / "config.toml"


@pytest.fixture
def workspace(tmp_path, checkout_factory):
    """A container with two checkouts plus one standalone checkout."""
    container = tmp_path / "code"
    checkout_factory(container / "alpha")
    checkout_factory(container / "beta")
    solo = checkout_factory(tmp_path / "solo")
    return container, solo


def invoke(config_file, *args):
    return runner.invoke(app, ["--config", str(config_file), *args])


def test_version():
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert "multigit" in result.output


def test_schema():
    result = runner.invoke(app, ["--schema"])

    assert result.exit_code == 0
    tools = [tool["name"] for tool in json.loads(result.output)["tools"]]
    assert {"register", "list", "status", "commit", "pull", "exec"} <= set(tools)


def test_register_then_list(config_file, workspace):
    container, solo = workspace

    result = invoke(config_file, "register", str(container), str(solo))
    assert result.exit_code == 0, result.output
    assert "Registered directory" in result.output
    assert "Registered repository" in result.output

    registry = Registry.load(config_file)
    assert list(registry.repositories.values()) == [solo]
    assert list(registry.directories.values()) == [container]

    result = invoke(config_file, "list", "--json")
    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["repositories"] == [
        str(container / "alpha"),
        str(container / "beta"),
        str(solo),
    ]


def test_list_plain_output_is_sorted(config_file, workspace):
    container, solo = workspace
    invoke(config_file, "register", str(solo), str(container))

    result = invoke(config_file, "list")

    assert result.exit_code == 0
    assert result.output.splitlines() == [str(container / "alpha"), str(container / "beta"), str(solo)]


def test_unregister(config_file, workspace):
    container, solo = workspace
    invoke(config_file, "register", str(container), str(solo))

    result = invoke(config_file, "unregister", str(container))

    assert result.exit_code == 0
    assert Registry.load(config_file).directories == {}
    assert list(Registry.load(config_file).repositories.values()) == [solo]


def test_unregister_all_asks_for_confirmation(config_file, workspace):
    container, solo = workspace
    invoke(config_file, "register", str(container), str(solo))

    declined = runner.invoke(app, ["--config", str(config_file), "unregister", "--all"], input="n\n")
    assert declined.exit_code == 0
    assert Registry.load(config_file).repositories != {}

    accepted = runner.invoke(app, ["--config", str(config_file), "unregister", "--all"], input="y\n")
    assert accepted.exit_code == 0
    registry = Registry.load(config_file)
    assert registry.repositories == {} and registry.directories == {}


def test_directory_rejected_for_registry_commands(config_file, workspace):
    container, _ = workspace

    result = invoke(config_file, "--directory", str(container), "register", str(container))

    assert result.exit_code != 0
    assert not config_file.exists()


def test_directory_scans_without_registry(config_file, workspace):
    container, _ = workspace

    result = invoke(config_file, "--directory", str(container), "list")

    assert result.exit_code == 0
    assert result.output.splitlines() == [str(container / "alpha"), str(container / "beta")]
    assert not config_file.exists()


def test_exec_requires_a_command(config_file, workspace):
    container, _ = workspace

    result = invoke(config_file, "--directory", str(container), "exec")

    assert result.exit_code == 2


def test_exec_exit_code_reflects_failures(config_file, workspace):
    container, _ = workspace
    script = "import os, sys; sys.exit(1 if os.path.basename(os.getcwd()) == 'alpha' else 0)"

    result = invoke(config_file, "--directory", str(container), "exec", "--", sys.executable, "-c", script)

    assert result.exit_code == 1
    assert "Errors occurred in 1 repositories" in result.output
    assert str(container / "beta") in result.output


def test_exec_succeeds_everywhere(config_file, workspace):
    container, _ = workspace

    result = invoke(config_file, "--directory", str(container), "exec", "--", sys.executable, "-c", "pass")

    assert result.exit_code == 0
    assert result.output.count("Running `") == 2


def test_list_fails_when_filter_cannot_inspect(config_file, tmp_path):
    registry = Registry.load(config_file)
    registry.repositories[str(tmp_path / "gone")] = tmp_path / "gone"
    registry.save()

    result = invoke(config_file, "list", "--filter", "dirty")

    assert result.exit_code == 1
    assert str(tmp_path / "gone") not in result.output.splitlines()


def test_status_fails_when_filter_cannot_inspect(config_file, tmp_path):
    registry = Registry.load(config_file)
    registry.repositories[str(tmp_path / "gone")] = tmp_path / "gone"
    registry.save()

    result = invoke(config_file, "status", "--filter", "dirty")

    assert result.exit_code == 1


def test_malformed_config_behaves_as_empty(config_file):
    config_file.write_text("[[[ not toml")

    result = invoke(config_file, "list")

    assert result.exit_code == 0
    assert "Failed to read config" in result.output
