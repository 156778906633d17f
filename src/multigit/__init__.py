"""multigit: run git operations across many repositories at once."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .cli import app
from .config import Registry
from .core import (
    Checkout,
    Command,
    CommandError,
    EntryState,
    ExecutionError,
    FanOutExecutor,
    Filter,
    GitOperations,
    InspectionError,
    InvocationReport,
    Multigit,
    MultigitError,
    OperationResult,
    RepositoryState,
    RepositorySummary,
    StateInspector,
    apply_filters,
    find_repositories,
    is_checkout,
    resolve_working_set,
)
from .formatters import OutputFormatter
from .schema import get_tool_schema

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "Checkout",
    "Command",
    "EntryState",
    "Filter",
    "InvocationReport",
    "OperationResult",
    "RepositoryState",
    "RepositorySummary",
    # Errors
    "CommandError",
    "ExecutionError",
    "InspectionError",
    "MultigitError",
    # Operations
    "FanOutExecutor",
    "GitOperations",
    "Multigit",
    "Registry",
    "StateInspector",
    "apply_filters",
    "find_repositories",
    "is_checkout",
    "resolve_working_set",
    # Functions
    "get_tool_schema",
    # Formatters
    "OutputFormatter",
]
