"""Command-line interface."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console

from ._version import __version__
from .config import Registry, resolve_config_path
from .core import CommandError, Filter, InvocationReport, Multigit
from .formatters import OutputFormatter
from .logging_utils import configure_logging
from .schema import get_tool_schema

DEFAULT_UI_PROGRAM = "gitup"
UI_ENV_VAR = "MULTIGIT_UI"

PASSTHROUGH_SETTINGS = {"allow_extra_args": True, "ignore_unknown_options": True}

app = typer.Typer(
    name="multigit",
    help="Run git operations across many repositories at once.",
    no_args_is_help=True,
)


@dataclass
class AppState:
    """Global options shared by all commands."""

    config_path: Path
    directory: Path | None = None


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"multigit {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="Registry file (default: $MULTIGIT_CONFIG or ~/.config/multigit/config.toml)",
    ),
    directory: Path = typer.Option(
        None,
        "--directory",
        "-d",
        help="Scan this directory instead of using registered repositories",
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase log verbosity (-v info, -vv debug)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        help="Output MCP-compatible tool schema for AI agents",
    ),
):
    """multigit: run git operations across many repositories at once."""
    configure_logging(verbose)
    if schema:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()

    ctx.obj = AppState(config_path=resolve_config_path(config), directory=directory)


def get_multigit(ctx: typer.Context, json_output: bool = False) -> tuple[Multigit, OutputFormatter]:
    """Create the formatter and the Multigit instance for this invocation."""
    state: AppState = ctx.obj
    console = Console(highlight=False)
    formatter = OutputFormatter(console, use_json=json_output)
    # --directory bypasses the registry entirely
    registry = None if state.directory is not None else Registry.load(state.config_path)
    return Multigit(registry, state.directory, formatter=formatter), formatter


def finish(report: InvocationReport, formatter: OutputFormatter):
    """Exit non-zero if any repository failed."""
    if report.failed:
        formatter.print_failure_summary(report)
        raise typer.Exit(1)


def _filter_option():
    return typer.Option(
        None,
        "--filter",
        help="Only include repositories matching this filter (repeatable, OR'd)",
    )


@app.command()
def register(
    ctx: typer.Context,
    paths: list[Path] = typer.Argument(
        None,
        help="Repositories or directories containing repositories (default: current directory)",
    ),
):
    """Register git repositories or directories of git repositories."""
    multigit, formatter = get_multigit(ctx)
    try:
        registered = multigit.register(paths or [])
    except CommandError as e:
        raise typer.BadParameter(str(e)) from e
    for path, is_repository in registered:
        formatter.print_registered(path, is_repository)


@app.command()
def unregister(
    ctx: typer.Context,
    paths: list[Path] = typer.Argument(
        None,
        help="Repositories or directories to unregister (default: current directory)",
    ),
    all_entries: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Unregister all repositories and directories",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation",
    ),
):
    """Unregister git repositories or directories of git repositories."""
    multigit, formatter = get_multigit(ctx)
    if all_entries and not yes and multigit.directory is None:
        if not typer.confirm("Unregister all repositories and directories?", default=False):
            raise typer.Exit()
    try:
        unregistered = multigit.unregister(paths or [], all_=all_entries)
    except CommandError as e:
        raise typer.BadParameter(str(e)) from e
    for path, removed in unregistered:
        formatter.print_unregistered(path, removed)


@app.command(name="list")
def list_repos(
    ctx: typer.Context,
    filters: list[Filter] = _filter_option(),
    detailed: bool = typer.Option(
        False,
        "--detailed",
        help="Show state, branch, ahead/behind and stashes",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """List managed repositories."""
    multigit, formatter = get_multigit(ctx, json_output)
    if detailed:
        summaries = multigit.describe(filters)
        formatter.print_repo_table(summaries)
        failed = any(not s.ok for s in summaries)
    else:
        formatter.print_repo_list(multigit.repositories(filters))
        failed = False

    if failed or multigit.inspection_errors:
        raise typer.Exit(1)


@app.command()
def status(
    ctx: typer.Context,
    filters: list[Filter] = _filter_option(),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Show the status of repositories with uncommitted changes."""
    multigit, formatter = get_multigit(ctx, json_output)
    report = multigit.status(filters)
    formatter.print_status_report(report)
    finish(report, formatter)
    if multigit.inspection_errors:
        raise typer.Exit(1)


def _run_git(ctx: typer.Context, subcommand: str, filters: list[Filter] | None, passthrough: list[str] | None):
    multigit, formatter = get_multigit(ctx)
    try:
        if subcommand == "pull":
            report = multigit.pull(filters, passthrough or [])
        else:
            report = multigit.git_command(subcommand, filters, passthrough or [])
    except CommandError as e:
        raise typer.BadParameter(str(e)) from e
    finish(report, formatter)


@app.command(context_settings=PASSTHROUGH_SETTINGS)
def add(
    ctx: typer.Context,
    filters: list[Filter] = _filter_option(),
    passthrough: list[str] = typer.Argument(None, help="Arguments passed to `git add`"),
):
    """Add files to the staging area in the selected repositories."""
    _run_git(ctx, "add", filters, passthrough)


@app.command(context_settings=PASSTHROUGH_SETTINGS)
def commit(
    ctx: typer.Context,
    filters: list[Filter] = _filter_option(),
    passthrough: list[str] = typer.Argument(None, help="Arguments passed to `git commit`"),
):
    """Commit changes in the selected repositories."""
    _run_git(ctx, "commit", filters, passthrough)


@app.command(context_settings=PASSTHROUGH_SETTINGS)
def push(
    ctx: typer.Context,
    filters: list[Filter] = _filter_option(),
    passthrough: list[str] = typer.Argument(None, help="Arguments passed to `git push`"),
):
    """Push changes to remote repositories."""
    _run_git(ctx, "push", filters, passthrough)


@app.command(context_settings=PASSTHROUGH_SETTINGS)
def fetch(
    ctx: typer.Context,
    filters: list[Filter] = _filter_option(),
    passthrough: list[str] = typer.Argument(None, help="Arguments passed to `git fetch`"),
):
    """Fetch changes from remote repositories."""
    _run_git(ctx, "fetch", filters, passthrough)


@app.command(context_settings=PASSTHROUGH_SETTINGS)
def pull(
    ctx: typer.Context,
    filters: list[Filter] = _filter_option(),
    passthrough: list[str] = typer.Argument(None, help="Arguments passed to `git pull`"),
):
    """Pull changes in repositories whose branch tracks a remote."""
    _run_git(ctx, "pull", filters, passthrough)


@app.command(name="exec", context_settings=PASSTHROUGH_SETTINGS)
def exec_command(
    ctx: typer.Context,
    filters: list[Filter] = _filter_option(),
    command: list[str] = typer.Argument(None, help="Command and arguments to run"),
):
    """Execute a custom command in the selected repositories."""
    multigit, formatter = get_multigit(ctx)
    try:
        report = multigit.exec(filters, command or [])
    except CommandError as e:
        raise typer.BadParameter(str(e), param_hint="COMMAND") from e
    finish(report, formatter)


@app.command()
def ui(
    ctx: typer.Context,
    filters: list[Filter] = _filter_option(),
    program: str = typer.Option(
        None,
        "--program",
        help=f"Git UI program to launch (default: ${UI_ENV_VAR} or {DEFAULT_UI_PROGRAM})",
    ),
    yes: bool = typer.Option(
        False,
        "--yes",
        "-y",
        help="Do not ask for confirmation when opening several repositories",
    ),
):
    """Open a git UI program in the selected repositories."""
    multigit, formatter = get_multigit(ctx)
    program = program or os.environ.get(UI_ENV_VAR) or DEFAULT_UI_PROGRAM
    checkouts = multigit.repositories(filters)
    if len(checkouts) > 1 and not yes:
        if not typer.confirm(f"Open {len(checkouts)} repositories?", default=False):
            raise typer.Exit()
    try:
        report = multigit.open_ui(checkouts, program)
    except CommandError as e:
        raise typer.BadParameter(str(e), param_hint="--program") from e
    finish(report, formatter)


@app.command()
def config(ctx: typer.Context):
    """Edit the registry file in $EDITOR."""
    state: AppState = ctx.obj
    if state.directory is not None:
        raise typer.BadParameter("--directory cannot be combined with registry commands")
    if not state.config_path.exists():
        Registry(path=state.config_path).save()
    typer.edit(filename=str(state.config_path))
