"""Shared pytest fixtures for all tests."""

import io
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from rich.console import Console

from multigit.core import InspectionError
from multigit.formatters import OutputFormatter

CONSOLE_WIDTH = 40
DIVIDER = "#" * CONSOLE_WIDTH


def make_checkout(path: Path) -> Path:
    """Create a directory that looks like a checkout root."""
    (path / ".git").mkdir(parents=True)
    return path


@pytest.fixture
def checkout_factory():
    return make_checkout


@dataclass
class FakeRepo:
    """Canned state for one checkout. ``broken`` makes every query fail."""

    dirty: bool = False
    branch: str = "main"
    tracking: bool = False
    ahead: bool | None = None
    behind: bool | None = None
    stashes: bool = False
    flags: list[str] = field(default_factory=list)
    broken: bool = False


class FakeInspector:
    def __init__(self, path: Path, repo: FakeRepo | None, calls: list):
        self.path = path
        self.repo = repo
        self.calls = calls

    def _get(self, query: str) -> FakeRepo:
        self.calls.append((self.path, query))
        if self.repo is None or self.repo.broken:
            raise InspectionError(self.path, f"{self.path} is not a git repository")
        return self.repo

    def is_dirty(self):
        return self._get("is_dirty").dirty

    def current_branch(self):
        return self._get("current_branch").branch

    def has_tracking_branch(self):
        return self._get("has_tracking_branch").tracking

    def ahead_of_remote(self):
        return self._get("ahead_of_remote").ahead

    def behind_remote(self):
        return self._get("behind_remote").behind

    def has_stashed_work(self):
        return self._get("has_stashed_work").stashes

    def status_flags(self):
        return list(self._get("status_flags").flags)


class FakeInspectorFactory:
    """Inspector factory returning canned states keyed by path."""

    def __init__(self, repos: dict):
        self.repos = {Path(p): r for p, r in repos.items()}
        self.calls: list = []

    def __call__(self, path: Path) -> FakeInspector:
        return FakeInspector(path, self.repos.get(Path(path)), self.calls)


@pytest.fixture
def fake_inspect():
    return FakeInspectorFactory


class FakeRunner:
    """Stand-in for subprocess.run recording every spawned command."""

    def __init__(self, exit_codes: dict | None = None, spawn_errors: dict | None = None):
        self.exit_codes = {Path(p): c for p, c in (exit_codes or {}).items()}
        self.spawn_errors = {Path(p): e for p, e in (spawn_errors or {}).items()}
        self.calls: list[tuple[list[str], Path]] = []

    def __call__(self, argv, cwd=None, check=False, **kwargs):
        cwd = Path(cwd)
        self.calls.append((list(argv), cwd))
        if cwd in self.spawn_errors:
            raise self.spawn_errors[cwd]
        return subprocess.CompletedProcess(argv, self.exit_codes.get(cwd, 0))


@pytest.fixture
def fake_runner():
    return FakeRunner


@pytest.fixture
def output():
    """Formatter writing to in-memory consoles; returns (formatter, stdout, stderr)."""
    stdout = io.StringIO()
    stderr = io.StringIO()
    formatter = OutputFormatter(
        Console(file=stdout, width=CONSOLE_WIDTH, highlight=False),
        err_console=Console(file=stderr, width=CONSOLE_WIDTH, highlight=False),
    )
    return formatter, stdout, stderr
