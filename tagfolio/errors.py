"""
Error types and error logging for tagfolio.

The exception classes describe the failures the core can report. Lookup
misses are LookupErrors and malformed input is a ValueError, so callers that
only care about the broad category can catch the builtin.

log_exception() keeps full stack traces in a log file while the CLI shows
clean one-line messages.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


class TagfolioError(Exception):
    """Base class for all tagfolio errors."""


class UnsupportedTypeError(TagfolioError, ValueError):
    """The basename has no extension, or one that maps to no element type."""

    def __init__(self, basename: str):
        super().__init__(f"Unsupported element type: {basename!r}")
        self.basename = basename


class InvalidTagNameError(TagfolioError, ValueError):
    """A tag name is empty or contains characters that cannot be encoded."""

    def __init__(self, name: str, reason: str = "contains invalid characters"):
        super().__init__(f"Invalid tag name {name!r}: {reason}")
        self.name = name
        self.reason = reason


class InvalidElementNameError(TagfolioError, ValueError):
    """An element name would not survive encoding into a basename."""

    def __init__(self, name: str, reason: str):
        super().__init__(f"Invalid element name {name!r}: {reason}")
        self.name = name
        self.reason = reason


class DuplicateTagError(TagfolioError):
    """A tag with the same name already exists."""

    def __init__(self, name: str, where: str = "collection"):
        super().__init__(f"Tag {name!r} already exists in {where}")
        self.name = name


class TagNotFoundError(TagfolioError, LookupError):
    """The tag is not in the registry."""

    def __init__(self, name: str):
        super().__init__(f"Tag not found: {name!r}")
        self.name = name


class ElementNotFoundError(TagfolioError, LookupError):
    """No element with this basename in the collection."""

    def __init__(self, basename: str):
        super().__init__(f"Element not found: {basename!r}")
        self.basename = basename


class CollectionNotFoundError(TagfolioError, LookupError):
    """The collection directory does not exist."""

    def __init__(self, path: str):
        super().__init__(f"Collection not found: {path!r}")
        self.path = path


class ElementConflictError(TagfolioError):
    """Renaming would overwrite another element."""

    def __init__(self, source: str, target: str):
        super().__init__(f"Cannot rename {source!r}: {target!r} already exists")
        self.source = source
        self.target = target


class BadEncodingError(TagfolioError, ValueError):
    """A path or name token is not valid URL-safe base64."""

    def __init__(self, token: str, reason: str = "badly encoded"):
        super().__init__(f"{reason}: {token!r}")
        self.token = token


class RegistryCorruptError(TagfolioError):
    """The tag registry file exists but cannot be parsed."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Corrupt tag registry {path!r}: {reason}")
        self.path = path
        self.reason = reason


def _error_log_path(root: Optional[Path] = None) -> Path:
    """Resolve error log path, respecting TAGFOLIO_ROOT."""
    if root is not None:
        return Path(root) / "tagfolio-errors.log"
    env_root = os.environ.get("TAGFOLIO_ROOT")
    if env_root:
        return Path(env_root) / "tagfolio-errors.log"
    return Path.home() / ".tagfolio" / "tagfolio-errors.log"


def log_exception(exc: Exception, context: str = "", root: Optional[Path] = None) -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)
        root: Library root; defaults to TAGFOLIO_ROOT or ~/.tagfolio

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path(root)
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
    except OSError:
        pass  # Error log is best-effort
    return log_path
