"""
multigit: run git operations across many repositories at once.

Registered checkouts and container directories are resolved into a sorted,
deduplicated working set, optionally filtered by repository state, and then
visited one at a time with the requested operation.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from .config import Registry
    from .formatters import OutputFormatter

logger = logging.getLogger(__name__)

GIT_DIR_NAME = ".git"

# =============================================================================
# Errors
# =============================================================================


class MultigitError(Exception):
    """Base class for errors local to one checkout or one invocation."""


class CommandError(MultigitError):
    """The requested operation is unusable; raised before any checkout is touched."""


class InspectionError(MultigitError):
    """The state of a checkout could not be read."""

    def __init__(self, path: Path, message: str):
        super().__init__(message)
        self.path = path


class ExecutionError(MultigitError):
    """A command failed, or could not be started, in a checkout."""


# =============================================================================
# Domain Models
# =============================================================================


class Filter(StrEnum):
    """Repository selection filters. Several filters are OR'd together."""

    DIRTY = "dirty"  # uncommitted or staged changes
    TRACKING = "tracking"  # current branch tracks a remote branch


class EntryState(StrEnum):
    """Condition flags that make up a repository state."""

    DIRTY = "dirty"


@dataclass(frozen=True)
class RepositoryState:
    """Set of condition flags for a checkout. Empty means clean."""

    entries: frozenset[EntryState] = frozenset()

    @property
    def is_clean(self) -> bool:
        return not self.entries

    def __str__(self) -> str:
        if self.is_clean:
            return "Clean"
        return ", ".join(sorted(entry.value.capitalize() for entry in self.entries))


@dataclass(frozen=True, order=True)
class Checkout:
    """A checkout root, identified by its normalized absolute path."""

    path: Path

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> Checkout:
        return cls(normalize_path(path))

    @property
    def name(self) -> str:
        return self.path.name or str(self.path)


@dataclass
class OperationResult:
    """Result of running an operation in one checkout."""

    path: Path
    name: str
    success: bool
    operation: str
    message: str = ""
    error: str = ""

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "success": self.success,
            "operation": self.operation,
            "message": self.message,
            "error": self.error,
        }


@dataclass
class InvocationReport:
    """Ordered results of one fan-out run, one per visited checkout."""

    operation: str
    results: list[OperationResult] = field(default_factory=list)

    @property
    def failures(self) -> list[OperationResult]:
        return [r for r in self.results if not r.success]

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def failed(self) -> bool:
        return any(not r.success for r in self.results)

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "total": len(self.results),
            "failed": self.failure_count,
            "results": [r.to_dict() for r in self.results],
        }


@dataclass
class RepositorySummary:
    """Inspection fields shown by the detailed listing.

    Fields that could not be read are None; the reasons are in ``errors``.
    """

    path: Path
    name: str
    state: RepositoryState | None = None
    branch: str | None = None
    behind_remote: bool | None = None
    ahead_remote: bool | None = None
    has_stashes: bool | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "name": self.name,
            "state": str(self.state) if self.state is not None else None,
            "branch": self.branch,
            "behind_remote": self.behind_remote,
            "ahead_remote": self.ahead_remote,
            "has_stashes": self.has_stashes,
            "errors": self.errors,
        }


@dataclass(frozen=True)
class Command:
    """An external command to run in every checkout."""

    argv: tuple[str, ...]
    git_subcommand: str | None = None

    @classmethod
    def git(
        cls, subcommand: str, passthrough: Sequence[str] = (), git_executable: str = "git"
    ) -> Command:
        """``git <subcommand> <passthrough...>``, arguments forwarded verbatim."""
        if not subcommand:
            raise CommandError("A git subcommand is required")
        return cls(argv=(git_executable, subcommand, *passthrough), git_subcommand=subcommand)

    @classmethod
    def external(cls, argv: Sequence[str]) -> Command:
        """An arbitrary program plus its arguments."""
        argv = tuple(argv)
        if not argv or not argv[0].strip():
            raise CommandError("No command given to execute")
        return cls(argv=argv)

    @property
    def program(self) -> str:
        return self.argv[0]

    @property
    def label(self) -> str:
        if self.git_subcommand is not None:
            return self.git_subcommand
        return shlex.join(self.argv)

    def describe_failure(self, path: Path, exit_code: int) -> str:
        if self.git_subcommand is not None:
            return (
                f"Git command {self.git_subcommand} failed in repository `{path}` "
                f"with exit code {exit_code}"
            )
        return f"Command `{self.label}` failed in repository `{path}` with exit code {exit_code}"


# =============================================================================
# Git Operations (state inspection)
# =============================================================================


class StateInspector(Protocol):
    """Read-only queries about one checkout. Every method may raise InspectionError."""

    def is_dirty(self) -> bool: ...

    def current_branch(self) -> str: ...

    def has_tracking_branch(self) -> bool: ...

    def ahead_of_remote(self) -> bool | None: ...

    def behind_remote(self) -> bool | None: ...

    def has_stashed_work(self) -> bool: ...

    def status_flags(self) -> list[str]: ...


InspectorFactory = Callable[[Path], StateInspector]

# Status flags in display order, mapped from porcelain v1 XY codes.
_STATUS_FLAG_ORDER = (
    "new",
    "modified",
    "deleted",
    "renamed",
    "typechange",
    "wt-new",
    "wt-modified",
    "wt-deleted",
    "wt-typechange",
    "wt-renamed",
    "conflicted",
)
_INDEX_FLAGS = {"A": "new", "C": "new", "M": "modified", "D": "deleted", "R": "renamed", "T": "typechange"}
_WORKTREE_FLAGS = {"A": "wt-new", "M": "wt-modified", "D": "wt-deleted", "T": "wt-typechange", "R": "wt-renamed"}
_CONFLICT_CODES = {"DD", "AU", "UD", "UA", "DU", "AA", "UU"}
_UNSET = object()


class GitOperations:
    """Read-only git queries for a single checkout, backed by the git binary."""

    def __init__(self, repo_path: Path, git_executable: str = "git"):
        self.repo_path = Path(repo_path)
        self.git_executable = git_executable
        self._upstream_counts = _UNSET

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        """Run a git command in the checkout without raising on exit status."""
        try:
            return subprocess.run(
                [self.git_executable, *args],
                cwd=self.repo_path,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise InspectionError(self.repo_path, f"Failed to run git in {self.repo_path}: {e}") from e

    def _open(self) -> None:
        if not is_checkout(self.repo_path):
            raise InspectionError(self.repo_path, f"{self.repo_path} is not a git repository")

    def _query(self, *args: str) -> str:
        """Run a git command and return stdout, raising InspectionError on failure."""
        self._open()
        result = self._run(*args)
        if result.returncode != 0:
            details = result.stderr.strip() or result.stdout.strip() or f"exit code {result.returncode}"
            raise InspectionError(self.repo_path, f"git {args[0]} failed in {self.repo_path}: {details}")
        return result.stdout

    def _porcelain_status(self) -> str:
        return self._query("status", "--porcelain=v1", "--untracked-files=normal")

    def status_flags(self) -> list[str]:
        """Change flags for the working tree and index, untracked files included."""
        flags: set[str] = set()
        for line in self._porcelain_status().splitlines():
            code = line[:2]
            if len(code) < 2:
                continue
            if code == "??":
                flags.add("wt-new")
            elif code in _CONFLICT_CODES:
                flags.add("conflicted")
            else:
                if code[0] in _INDEX_FLAGS:
                    flags.add(_INDEX_FLAGS[code[0]])
                if code[1] in _WORKTREE_FLAGS:
                    flags.add(_WORKTREE_FLAGS[code[1]])
        return [flag for flag in _STATUS_FLAG_ORDER if flag in flags]

    def is_dirty(self) -> bool:
        # Any porcelain entry counts, flagged or not (intent-to-add, copies).
        return bool(self._porcelain_status().strip())

    def current_branch(self) -> str:
        """Short name of HEAD ("HEAD" when detached).

        Works on an unborn branch, where HEAD names a branch with no commits.
        """
        self._open()
        result = self._run("symbolic-ref", "--short", "-q", "HEAD")
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip()
        return self._query("rev-parse", "--abbrev-ref", "HEAD").strip()

    def has_tracking_branch(self) -> bool:
        self._open()
        result = self._run("rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}")
        return result.returncode == 0

    def _ahead_behind(self) -> tuple[int, int] | None:
        """(ahead, behind) commit counts against upstream, None without one.

        Computed once per instance; failures are not cached.
        """
        if self._upstream_counts is not _UNSET:
            return self._upstream_counts
        if not self.has_tracking_branch():
            counts = None
        else:
            parts = self._query("rev-list", "--left-right", "--count", "@{u}...HEAD").split()
            if len(parts) != 2:
                raise InspectionError(self.repo_path, f"Unexpected rev-list output in {self.repo_path}")
            counts = int(parts[1]), int(parts[0])
        self._upstream_counts = counts
        return counts

    def ahead_of_remote(self) -> bool | None:
        counts = self._ahead_behind()
        return None if counts is None else counts[0] > 0

    def behind_remote(self) -> bool | None:
        counts = self._ahead_behind()
        return None if counts is None else counts[1] > 0

    def has_stashed_work(self) -> bool:
        return bool(self._query("stash", "list").strip())


def repository_state(inspector: StateInspector) -> RepositoryState:
    """Compute a fresh RepositoryState from an inspector."""
    if inspector.is_dirty():
        return RepositoryState(frozenset({EntryState.DIRTY}))
    return RepositoryState()


def inspect_checkout(checkout: Checkout, inspect: InspectorFactory = GitOperations) -> RepositorySummary:
    """Gather the detailed listing fields, leaving unreadable ones blank."""
    inspector = inspect(checkout.path)
    summary = RepositorySummary(path=checkout.path, name=checkout.name)

    def attempt(query):
        try:
            return query()
        except InspectionError as e:
            if str(e) not in summary.errors:
                summary.errors.append(str(e))
            return None

    summary.state = attempt(lambda: repository_state(inspector))
    summary.branch = attempt(inspector.current_branch)
    summary.behind_remote = attempt(inspector.behind_remote)
    summary.ahead_remote = attempt(inspector.ahead_of_remote)
    summary.has_stashes = attempt(inspector.has_stashed_work)
    return summary


# =============================================================================
# Repository Discovery
# =============================================================================


def normalize_path(path: str | os.PathLike[str]) -> Path:
    """Absolute, normalized path without resolving symlinks."""
    return Path(os.path.abspath(os.path.expanduser(os.fspath(path))))


def is_checkout(path: Path) -> bool:
    """Check whether a directory is a checkout root (has a .git entry)."""
    return os.path.exists(os.path.join(path, GIT_DIR_NAME))


def _log_walk_error(error: OSError) -> None:
    logger.warning("Cannot read %s: %s", error.filename, error.strerror or error)


def find_repositories(root: Path) -> list[Path]:
    """Discover checkout roots under a directory tree.

    Hidden directories and symlinks are skipped, and checkouts are reported without
    descending into them, so nothing inside a checkout (its .git directory
    included) is ever reported. A missing root yields an empty list.

    Returns:
        Checkout root paths, sorted.
    """
    root = Path(root).expanduser()
    if not os.path.isdir(root):
        logger.info("Skipping %s: not a directory", root)
        return []
    if is_checkout(root):
        return [root]

    found: list[Path] = []
    for dirpath, dirnames, _ in os.walk(root, onerror=_log_walk_error):
        current = Path(dirpath)
        descend = []
        for name in dirnames:
            candidate = current / name
            if name.startswith(".") or os.path.islink(candidate):
                continue
            if is_checkout(candidate):
                found.append(candidate)
            else:
                descend.append(name)
        dirnames[:] = descend

    found.sort()
    logger.debug("Found %d repositories under %s", len(found), root)
    return found


def resolve_working_set(
    repositories: Iterable[Path],
    directories: Iterable[Path],
    directory: Path | None = None,
    *,
    scan: Callable[[Path], Iterable[Path]] = find_repositories,
) -> list[Checkout]:
    """Combine registered checkouts and scanned containers into the working set.

    With ``directory`` set, the registered entries are ignored and only that
    tree is scanned. Registered checkouts are passed through as-is.

    Returns:
        Unique checkouts sorted by path.
    """
    if directory is not None:
        return sorted({Checkout.from_path(p) for p in scan(directory)})

    checkouts = {Checkout.from_path(p) for p in repositories}
    for container in directories:
        checkouts.update(Checkout.from_path(p) for p in scan(container))
    return sorted(checkouts)


# =============================================================================
# Filtering
# =============================================================================


def evaluate_filter(filter_: Filter, inspector: StateInspector) -> bool:
    if filter_ is Filter.DIRTY:
        return inspector.is_dirty()
    if filter_ is Filter.TRACKING:
        return inspector.has_tracking_branch()
    raise ValueError(f"Unknown filter: {filter_!r}")


def apply_filters(
    checkouts: Sequence[Checkout],
    filters: Sequence[Filter] | None,
    inspect: InspectorFactory = GitOperations,
    on_error: Callable[[Checkout, InspectionError], None] | None = None,
) -> list[Checkout]:
    """Keep checkouts matching at least one filter, in input order.

    No filters (None or empty) keeps everything. A checkout that cannot be
    inspected matches nothing and is dropped.
    """
    if not filters:
        return list(checkouts)

    selected = []
    for checkout in checkouts:
        inspector = inspect(checkout.path)
        try:
            matched = any(evaluate_filter(f, inspector) for f in filters)
        except InspectionError as e:
            logger.warning("Skipping %s: %s", checkout.path, e)
            if on_error is not None:
                on_error(checkout, e)
            continue
        if matched:
            selected.append(checkout)
    return selected


# =============================================================================
# Fan-Out Execution
# =============================================================================


ProcessRunner = Callable[..., subprocess.CompletedProcess]


class FanOutExecutor:
    """Visit checkouts one at a time, isolating and collecting failures."""

    def __init__(self, formatter: OutputFormatter, runner: ProcessRunner = subprocess.run):
        self.formatter = formatter
        self.runner = runner

    def process(
        self,
        checkouts: Sequence[Checkout],
        operation: str,
        visit: Callable[[Checkout], str | None],
    ) -> InvocationReport:
        """Call ``visit`` for every checkout; a failure never stops the batch."""
        report = InvocationReport(operation=operation)
        for checkout in checkouts:
            try:
                message = visit(checkout) or ""
            except MultigitError as e:
                self.formatter.print_repository_error(checkout, e)
                report.results.append(
                    OperationResult(
                        path=checkout.path,
                        name=checkout.name,
                        success=False,
                        operation=operation,
                        error=str(e),
                    )
                )
                continue
            report.results.append(
                OperationResult(
                    path=checkout.path,
                    name=checkout.name,
                    success=True,
                    operation=operation,
                    message=message,
                )
            )

        if report.failed:
            logger.info("%s failed in %d of %d repositories", operation, report.failure_count, len(report.results))
        return report

    def run(self, checkouts: Sequence[Checkout], command: Command) -> InvocationReport:
        """Run an external command in every checkout, with a divider between checkouts."""
        first = True

        def visit(checkout: Checkout) -> str:
            nonlocal first
            if not first:
                self.formatter.print_divider()
            first = False

            self.formatter.print_running(command.label, checkout.path)
            logger.debug("Running %s in %s", command.argv, checkout.path)
            try:
                completed = self.runner(list(command.argv), cwd=checkout.path, check=False)
            except OSError as e:
                raise ExecutionError(
                    f"Failed to run `{command.program}` in repository `{checkout.path}`: {e}"
                ) from e
            if completed.returncode != 0:
                raise ExecutionError(command.describe_failure(checkout.path, completed.returncode))
            return ""

        return self.process(checkouts, command.label, visit)


# =============================================================================
# Multigit
# =============================================================================


class Multigit:
    """Resolve, filter and operate on the managed repositories."""

    def __init__(
        self,
        registry: Registry | None,
        directory: Path | None = None,
        *,
        formatter: OutputFormatter,
        inspect: InspectorFactory = GitOperations,
        runner: ProcessRunner = subprocess.run,
        scan: Callable[[Path], Iterable[Path]] = find_repositories,
        git_executable: str = "git",
    ):
        if registry is None and directory is None:
            raise CommandError("Either a registry or a directory is required")
        self.registry = registry
        self.directory = directory
        self.formatter = formatter
        self.inspect = inspect
        self.scan = scan
        self.git_executable = git_executable
        self.executor = FanOutExecutor(formatter, runner)
        self.inspection_errors: list[tuple[Checkout, InspectionError]] = []

    def _record_inspection_error(self, checkout: Checkout, error: InspectionError) -> None:
        self.inspection_errors.append((checkout, error))

    def _require_registry(self) -> Registry:
        if self.directory is not None or self.registry is None:
            raise CommandError("--directory cannot be combined with registry commands")
        return self.registry

    def repositories(self, filters: Sequence[Filter] | None = None) -> list[Checkout]:
        """The working set for this invocation, filtered."""
        if self.registry is not None:
            repositories = self.registry.repositories.values()
            directories = self.registry.directories.values()
        else:
            repositories, directories = (), ()
        checkouts = resolve_working_set(repositories, directories, self.directory, scan=self.scan)
        logger.info("Resolved %d repositories", len(checkouts))
        return apply_filters(checkouts, filters, self.inspect, self._record_inspection_error)

    # -- registry ---------------------------------------------------------

    def register(self, paths: Sequence[Path]) -> list[tuple[Path, bool]]:
        """Register paths (default: the current directory) as checkouts or containers."""
        registry = self._require_registry()
        targets = list(paths) or [Path.cwd()]
        return [(normalize_path(path), registry.register(path)) for path in targets]

    def unregister(self, paths: Sequence[Path], all_: bool = False) -> list[tuple[Path, bool]]:
        registry = self._require_registry()
        if all_:
            registry.clear()
            return []
        targets = list(paths) or [Path.cwd()]
        return [(normalize_path(path), registry.unregister(path)) for path in targets]

    # -- read-only operations ----------------------------------------------

    def describe(self, filters: Sequence[Filter] | None = None) -> list[RepositorySummary]:
        summaries = [inspect_checkout(c, self.inspect) for c in self.repositories(filters)]
        for summary in summaries:
            if not summary.ok:
                logger.warning("Could not fully inspect %s: %s", summary.path, "; ".join(summary.errors))
        return summaries

    def status(self, filters: Sequence[Filter] | None = None) -> InvocationReport:
        """Print the change flags of every dirty checkout."""

        def visit(checkout: Checkout) -> str:
            flags = self.inspect(checkout.path).status_flags()
            if flags:
                self.formatter.print_status_line(checkout, flags)
            return " ".join(flags)

        return self.executor.process(self.repositories(filters), "status", visit)

    # -- mutating operations ----------------------------------------------

    def git_command(
        self, subcommand: str, filters: Sequence[Filter] | None, passthrough: Sequence[str] = ()
    ) -> InvocationReport:
        command = Command.git(subcommand, passthrough, self.git_executable)
        return self.executor.run(self.repositories(filters), command)

    def add(self, filters: Sequence[Filter] | None, passthrough: Sequence[str] = ()) -> InvocationReport:
        return self.git_command("add", filters, passthrough)

    def commit(self, filters: Sequence[Filter] | None, passthrough: Sequence[str] = ()) -> InvocationReport:
        return self.git_command("commit", filters, passthrough)

    def push(self, filters: Sequence[Filter] | None, passthrough: Sequence[str] = ()) -> InvocationReport:
        return self.git_command("push", filters, passthrough)

    def fetch(self, filters: Sequence[Filter] | None, passthrough: Sequence[str] = ()) -> InvocationReport:
        return self.git_command("fetch", filters, passthrough)

    def pull(self, filters: Sequence[Filter] | None, passthrough: Sequence[str] = ()) -> InvocationReport:
        """Pull only in checkouts whose branch tracks a remote; the rest are skipped."""
        command = Command.git("pull", passthrough, self.git_executable)
        checkouts = [c for c in self.repositories(filters) if self._tracks_remote(c)]
        return self.executor.run(checkouts, command)

    def _tracks_remote(self, checkout: Checkout) -> bool:
        try:
            return self.inspect(checkout.path).has_tracking_branch()
        except InspectionError as e:
            logger.debug("Not pulling %s: %s", checkout.path, e)
            return False

    def exec(self, filters: Sequence[Filter] | None, argv: Sequence[str]) -> InvocationReport:
        command = Command.external(argv)
        return self.executor.run(self.repositories(filters), command)

    def open_ui(self, checkouts: Sequence[Checkout], program: str) -> InvocationReport:
        """Launch a git UI program in each checkout."""
        command = Command.external([program])
        return self.executor.run(checkouts, command)
