"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from .core import Checkout, InvocationReport, RepositorySummary


def compute_unique_display_names(
    items: list[Any],
    name_attr: str = "name",
    path_attr: str = "path",
) -> dict[Path, str]:
    """Compute unique display names for items with duplicate names.

    When multiple items share the same name, parent directory components
    are added until each name becomes unique.

    Args:
        items: List of objects with name and path attributes
        name_attr: Name of the attribute containing the item name
        path_attr: Name of the attribute containing the item path

    Returns:
        Dictionary mapping path to display name
    """
    name_groups: dict[str, list[Any]] = defaultdict(list)
    for item in items:
        name_groups[getattr(item, name_attr)].append(item)

    result: dict[Path, str] = {}
    for name, group in name_groups.items():
        if len(group) == 1:
            result[getattr(group[0], path_attr)] = name
        else:
            paths = [getattr(item, path_attr) for item in group]
            for path, unique_name in zip(paths, _make_paths_unique(paths)):
                result[path] = unique_name
    return result


def _make_paths_unique(paths: list[Path]) -> list[str]:
    """Generate shortest unique display names for a list of paths.

    For each path, adds parent directory components until the name
    is unique among all paths.
    """
    path_parts_list = [list(reversed(p.parts)) for p in paths]

    result = []
    for i, parts in enumerate(path_parts_list):
        for depth in range(1, len(parts) + 1):
            candidate = "/".join(reversed(parts[:depth]))
            clashes = any(
                "/".join(reversed(other[: min(depth, len(other))])) == candidate
                for j, other in enumerate(path_parts_list)
                if i != j
            )
            if not clashes:
                result.append(candidate)
                break
        else:
            result.append("/".join(reversed(parts)))
    return result


def _display_flag(value: bool | None) -> str:
    """Render an optional boolean, leaving unknown values blank."""
    if value is None:
        return ""
    return "yes" if value else "no"


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False, err_console: Console | None = None):
        self.console = console
        self.use_json = use_json
        self.err_console = err_console or Console(stderr=True, highlight=False)

    # -- listing ------------------------------------------------------------

    def print_repo_list(self, checkouts: list[Checkout]):
        """Print one checkout path per line."""
        if self.use_json:
            self._print_json({"repositories": [str(c.path) for c in checkouts], "total": len(checkouts)})
            return
        for checkout in checkouts:
            self.console.print(f"[cyan]{escape(str(checkout.path))}[/]", soft_wrap=True)

    def print_repo_table(self, summaries: list[RepositorySummary]):
        """Print the detailed listing."""
        if self.use_json:
            self._print_json(
                {
                    "repositories": [s.to_dict() for s in summaries],
                    "total": len(summaries),
                    "errors": sum(1 for s in summaries if not s.ok),
                }
            )
            return

        display_names = compute_unique_display_names(summaries)
        table = Table()
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("State")
        table.add_column("Branch")
        table.add_column("Behind", justify="center")
        table.add_column("Ahead", justify="center")
        table.add_column("Stashes", justify="center")

        for summary in summaries:
            state = ""
            if summary.state is not None:
                state = "[green]Clean[/]" if summary.state.is_clean else f"[yellow]{summary.state}[/]"
            table.add_row(
                escape(display_names.get(summary.path, summary.name)),
                state,
                escape(summary.branch or ""),
                _display_flag(summary.behind_remote),
                _display_flag(summary.ahead_remote),
                _display_flag(summary.has_stashes),
            )
        self.console.print(table)

    # -- status ---------------------------------------------------------------

    def print_status_line(self, checkout: Checkout, flags: list[str]):
        if self.use_json:
            return
        flag_text = " ".join(f"[{flag}]" for flag in flags)
        self.console.print(
            f"[cyan]{escape(str(checkout.path))}[/] [yellow]{escape(flag_text)}[/]", soft_wrap=True
        )

    def print_status_report(self, report: InvocationReport):
        """Print collected status results (JSON mode only; text is printed as it goes)."""
        if not self.use_json:
            return
        self._print_json(
            {
                "repositories": [
                    {
                        "path": str(r.path),
                        "name": r.name,
                        "flags": r.message.split() if r.message else [],
                        "success": r.success,
                        "error": r.error,
                    }
                    for r in report.results
                ],
                "total": len(report.results),
                "errors": report.failure_count,
            }
        )

    # -- fan-out --------------------------------------------------------------

    def print_divider(self):
        self.console.print()
        self.console.rule(characters="#", style="red")
        self.console.print()

    def print_running(self, label: str, path: Path):
        self.console.print(
            f"Running `[green]{escape(label)}[/]` in [cyan]{escape(str(path))}[/]\n", soft_wrap=True
        )

    def print_repository_error(self, checkout: Checkout, error: Exception):
        self.err_console.print(
            f"[red]Error processing repository {escape(str(checkout.path))}:[/] {escape(str(error))}",
            soft_wrap=True,
        )

    def print_failure_summary(self, report: InvocationReport):
        self.err_console.print(f"[bold red]Errors occurred in {report.failure_count} repositories[/]")

    # -- registry -------------------------------------------------------------

    def print_registered(self, path: Path, is_repository: bool):
        kind = "repository" if is_repository else "directory"
        self.console.print(f"Registered {kind} [cyan]{escape(str(path))}[/]", soft_wrap=True)

    def print_unregistered(self, path: Path, removed: bool):
        if removed:
            self.console.print(f"Unregistered [cyan]{escape(str(path))}[/]", soft_wrap=True)
        else:
            self.console.print(f"[yellow]Not registered:[/] {escape(str(path))}", soft_wrap=True)

    def _print_json(self, payload: dict):
        print(json.dumps(payload, indent=2))
