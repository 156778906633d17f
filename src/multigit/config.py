"""Persisted registry of checkouts and container directories."""

from __future__ import annotations

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import tomli_w

from .core import is_checkout, normalize_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/multigit/config.toml")
CONFIG_ENV_VAR = "MULTIGIT_CONFIG"


@dataclass
class Registry:
    """Registered checkouts and containers, keyed by absolute path.

    A registered path is classified once, when it is registered: a checkout
    root goes to ``repositories``, anything else to ``directories``.
    """

    path: Path
    repositories: dict[str, Path] = field(default_factory=dict)
    directories: dict[str, Path] = field(default_factory=dict)

    @classmethod
    def load(cls, config_path: Path) -> Registry:
        """Load the registry, falling back to an empty one.

        A missing file means nothing is registered yet. An unreadable or
        malformed file is logged and treated the same way.
        """
        config_path = config_path.expanduser()
        registry = cls(path=config_path)
        if not config_path.exists():
            logger.info("Config file not found at %s, using an empty registry", config_path)
            return registry

        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            logger.warning("Failed to read config %s (%s), using an empty registry", config_path, e)
            return registry

        registry.repositories = _read_table(data, "repositories", config_path)
        registry.directories = _read_table(data, "directories", config_path)
        return registry

    def save(self) -> None:
        """Write the registry to its config file, creating parent directories."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "repositories": {key: {"path": str(p)} for key, p in sorted(self.repositories.items())},
            "directories": {key: {"path": str(p)} for key, p in sorted(self.directories.items())},
        }
        with open(self.path, "wb") as f:
            tomli_w.dump(data, f)
        logger.debug("Saved registry to %s", self.path)

    def register(self, path: Path) -> bool:
        """Register a checkout or container and persist immediately.

        Returns:
            True if the path was registered as a checkout, False if as a container.
        """
        absolute = normalize_path(path)
        key = str(absolute)
        checkout = is_checkout(absolute)
        if checkout:
            self.directories.pop(key, None)
            self.repositories[key] = absolute
        else:
            self.repositories.pop(key, None)
            self.directories[key] = absolute
        self.save()
        logger.info(
            "Registered %s as %s", absolute, "repository" if checkout else "directory"
        )
        return checkout

    def unregister(self, path: Path) -> bool:
        """Remove a path from both tables and persist. Returns True if it was registered."""
        key = str(normalize_path(path))
        removed = self.repositories.pop(key, None) is not None
        removed = self.directories.pop(key, None) is not None or removed
        self.save()
        if not removed:
            logger.warning("%s was not registered", key)
        return removed

    def clear(self) -> None:
        self.repositories.clear()
        self.directories.clear()
        self.save()


def resolve_config_path(config: Path | None = None) -> Path:
    """Pick the config file: explicit option, then $MULTIGIT_CONFIG, then the default."""
    if config is not None:
        return config.expanduser()
    env_config = os.environ.get(CONFIG_ENV_VAR)
    if env_config:
        return Path(env_config).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def _read_table(data: dict, name: str, config_path: Path) -> dict[str, Path]:
    table = data.get(name, {})
    if not isinstance(table, dict):
        logger.warning("Ignoring malformed [%s] table in %s", name, config_path)
        return {}

    entries: dict[str, Path] = {}
    for key, entry in table.items():
        raw_path = entry.get("path") if isinstance(entry, dict) else None
        if not isinstance(raw_path, str) or not raw_path:
            logger.warning("Ignoring malformed %s entry %r in %s", name, key, config_path)
            continue
        entries[key] = Path(raw_path).expanduser()
    return entries
