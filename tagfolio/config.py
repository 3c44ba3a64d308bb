"""
Configuration management for tagfolio libraries.

A library is a root directory whose subdirectories are collections. Its
configuration is stored as a TOML file at the root.
"""

import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import tomli_w

from .tag_registry import DEFAULT_REGISTRY_FILENAME

CONFIG_FILENAME = "tagfolio.toml"
CONFIG_VERSION = 1
DEFAULT_RENAME_WORKERS = 4


@dataclass
class LibraryConfig:
    """Complete library configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    # Name of the per-collection registry file
    registry_filename: str = DEFAULT_REGISTRY_FILENAME

    # Threads used to rename elements during a batch rename
    rename_workers: int = DEFAULT_RENAME_WORKERS

    # Persistent operations log at the root
    ops_log: bool = True

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        """Check if config file exists."""
        return self.config_path.exists()


def get_root(root: Optional[Path] = None) -> Path:
    """
    Resolve the library root.

    Priority:
    1. Explicit argument
    2. TAGFOLIO_ROOT environment variable
    3. Current directory
    """
    if root is not None:
        return Path(root).expanduser().resolve()
    env_root = os.environ.get("TAGFOLIO_ROOT")
    if env_root:
        return Path(env_root).expanduser().resolve()
    return Path.cwd().resolve()


def _validate(config: LibraryConfig) -> LibraryConfig:
    if config.rename_workers < 1:
        raise ValueError(f"rename.workers must be at least 1, got {config.rename_workers}")
    if not config.registry_filename or "/" in config.registry_filename:
        raise ValueError(f"registry.filename must be a plain file name: {config.registry_filename!r}")
    return config


def load_config(root: Path) -> LibraryConfig:
    """
    Load configuration from a library root.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = root / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid config {config_path}: {e}") from e

    library = data.get("library", {})
    version = library.get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    return _validate(LibraryConfig(
        path=root,
        version=version,
        created=library.get("created", ""),
        registry_filename=data.get("registry", {}).get("filename", DEFAULT_REGISTRY_FILENAME),
        rename_workers=int(data.get("rename", {}).get("workers", DEFAULT_RENAME_WORKERS)),
        ops_log=bool(data.get("logging", {}).get("ops_log", True)),
    ))


def save_config(config: LibraryConfig) -> None:
    """
    Save configuration to the library root.

    Creates the directory if it doesn't exist.
    """
    _validate(config)
    config.path.mkdir(parents=True, exist_ok=True)

    data = {
        "library": {
            "version": config.version,
            "created": config.created,
        },
        "registry": {"filename": config.registry_filename},
        "rename": {"workers": config.rename_workers},
        "logging": {"ops_log": config.ops_log},
    }

    with open(config.config_path, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(root: Path) -> LibraryConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    if (root / CONFIG_FILENAME).exists():
        return load_config(root)
    config = LibraryConfig(path=root)
    save_config(config)
    return config
