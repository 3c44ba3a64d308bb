"""
Filesystem adapter.

The core never touches the OS directly: it talks to a FilesystemProtocol
with paths relative to a library root ("holidays/sunset #beach.jpg").
LocalFilesystem maps that onto a real directory.
"""

import logging
import os
from pathlib import Path
from typing import Protocol, runtime_checkable

from .types import FileMeta

logger = logging.getLogger(__name__)


@runtime_checkable
class FilesystemProtocol(Protocol):
    """
    Storage primitives the core relies on.

    Implementations must report accurate metadata and make rename() atomic
    within one directory, replacing an existing target.
    """

    def list(self, path: str) -> list[FileMeta]: ...

    def is_dir(self, path: str) -> bool: ...

    def exists(self, path: str) -> bool: ...

    def same_file(self, path: str, other: str) -> bool: ...

    def read(self, path: str) -> bytes: ...

    def write(self, path: str, data: bytes) -> None: ...

    def rename(self, old_path: str, new_path: str) -> None: ...

    def delete(self, path: str) -> None: ...


def join_path(directory: str, basename: str) -> str:
    """Join a relative directory and a basename with '/'."""
    directory = directory.strip("/")
    return f"{directory}/{basename}" if directory else basename


class LocalFilesystem:
    """
    FilesystemProtocol over a directory on the local disk.

    Relative paths that would resolve outside the root are rejected with
    ValueError.
    """

    def __init__(self, root: Path):
        self._root = Path(root).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        resolved = (self._root / path.lstrip("/")).resolve()
        if resolved != self._root and self._root not in resolved.parents:
            raise ValueError(f"Path escapes library root: {path!r}")
        return resolved

    def _relative(self, full: Path) -> str:
        return full.relative_to(self._root).as_posix()

    def list(self, path: str) -> list[FileMeta]:
        """List regular files directly inside a directory, sorted by name.

        Raises:
            FileNotFoundError: if the directory does not exist
        """
        directory = self._resolve(path)
        if not directory.is_dir():
            raise FileNotFoundError(f"Not a directory: {path!r}")
        entries = []
        for entry in sorted(directory.iterdir()):
            if entry.is_symlink() or not entry.is_file():
                continue
            stat = entry.stat()
            entries.append(FileMeta(
                path=self._relative(entry),
                size=stat.st_size,
                timestamp=stat.st_mtime,
            ))
        return entries

    def is_dir(self, path: str) -> bool:
        return self._resolve(path).is_dir()

    def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def same_file(self, path: str, other: str) -> bool:
        """True if both paths name the same file, as two spellings do on case-insensitive disks."""
        first, second = self._resolve(path), self._resolve(other)
        if first == second:
            return True
        try:
            return os.path.samefile(first, second)
        except FileNotFoundError:
            return False

    def read(self, path: str) -> bytes:
        return self._resolve(path).read_bytes()

    def write(self, path: str, data: bytes) -> None:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)

    def rename(self, old_path: str, new_path: str) -> None:
        source = self._resolve(old_path)
        target = self._resolve(new_path)
        if source == target:
            return
        os.replace(source, target)
        logger.debug("Renamed %s -> %s", old_path, new_path)

    def delete(self, path: str) -> None:
        self._resolve(path).unlink()
