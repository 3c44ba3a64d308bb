"""
Shared pytest fixtures for tagfolio tests.

Provides an in-memory filesystem adapter (with failure injection) and
libraries populated on disk.
"""

import threading
from pathlib import Path

import pytest

from tagfolio.api import Tagfolio, collection_token
from tagfolio.config import LibraryConfig
from tagfolio.types import FileMeta


class MemoryFilesystem:
    """
    In-memory FilesystemProtocol for tests.

    With case_insensitive=True, paths differing only in case name one file
    for exists() and same_file(), as on default macOS and Windows disks.

    Records every rename in `renames`. Renames whose source basename is in
    `fail_renames` raise PermissionError, to simulate a locked file.
    """

    def __init__(self, case_insensitive: bool = False):
        self.case_insensitive = case_insensitive
        self.files: dict[str, bytes] = {}
        self.mtimes: dict[str, float] = {}
        self.dirs: set[str] = {""}
        self.renames: list[tuple[str, str]] = []
        self.writes: list[str] = []
        self.fail_renames: set[str] = set()
        self._clock = 1_700_000_000.0
        self._lock = threading.Lock()

    def _tick(self) -> float:
        self._clock += 1
        return self._clock

    def mkdir(self, path: str) -> None:
        parts = path.strip("/").split("/")
        for i in range(1, len(parts) + 1):
            self.dirs.add("/".join(parts[:i]))

    def add(self, path: str, data: bytes = b"") -> None:
        path = path.strip("/")
        if "/" in path:
            self.mkdir(path.rsplit("/", 1)[0])
        self.files[path] = data
        self.mtimes[path] = self._tick()

    def basenames(self, directory: str) -> list[str]:
        return sorted(m.basename for m in self.list(directory))

    # -- FilesystemProtocol --

    def list(self, path: str) -> list[FileMeta]:
        path = path.strip("/")
        if path not in self.dirs:
            raise FileNotFoundError(path)
        prefix = f"{path}/" if path else ""
        return [
            FileMeta(p, len(data), self.mtimes[p])
            for p, data in sorted(self.files.items())
            if p.startswith(prefix) and "/" not in p[len(prefix):]
        ]

    def is_dir(self, path: str) -> bool:
        return path.strip("/") in self.dirs

    def _key(self, path: str) -> str:
        path = path.strip("/")
        return path.lower() if self.case_insensitive else path

    def exists(self, path: str) -> bool:
        if not self.case_insensitive:
            path = path.strip("/")
            return path in self.files or path in self.dirs
        key = self._key(path)
        with self._lock:
            return any(self._key(p) == key for p in (*self.files, *self.dirs))

    def same_file(self, path: str, other: str) -> bool:
        return self._key(path) == self._key(other)

    def read(self, path: str) -> bytes:
        try:
            return self.files[path.strip("/")]
        except KeyError:
            raise FileNotFoundError(path) from None

    def write(self, path: str, data: bytes) -> None:
        with self._lock:
            self.add(path, data)
            self.writes.append(path.strip("/"))

    def rename(self, old_path: str, new_path: str) -> None:
        with self._lock:
            old_path, new_path = old_path.strip("/"), new_path.strip("/")
            if old_path.rsplit("/", 1)[-1] in self.fail_renames:
                raise PermissionError(f"File is locked: {old_path}")
            if old_path not in self.files:
                raise FileNotFoundError(old_path)
            self.files[new_path] = self.files.pop(old_path)
            self.mtimes[new_path] = self.mtimes.pop(old_path)
            self.renames.append((old_path, new_path))

    def delete(self, path: str) -> None:
        with self._lock:
            path = path.strip("/")
            del self.files[path]
            del self.mtimes[path]


@pytest.fixture
def memory_fs():
    """A fresh in-memory filesystem with an empty 'photos' collection."""
    fs = MemoryFilesystem()
    fs.mkdir("photos")
    return fs


@pytest.fixture
def case_insensitive_fs():
    """An in-memory filesystem that ignores case, with an empty 'photos' collection."""
    fs = MemoryFilesystem(case_insensitive=True)
    fs.mkdir("photos")
    return fs


@pytest.fixture
def memory_library(memory_fs, tmp_path):
    """A Tagfolio over the in-memory filesystem (ops log in tmp_path)."""
    config = LibraryConfig(path=tmp_path, ops_log=False, rename_workers=4)
    tf = Tagfolio(config=config, filesystem=memory_fs)
    yield tf
    tf.close()


def make_collection(root: Path, name: str, basenames: list[str], tags: list[str] | None = None) -> Path:
    """Create a collection directory with empty element files and a registry."""
    import json

    directory = root / name
    directory.mkdir(parents=True, exist_ok=True)
    for basename in basenames:
        (directory / basename).write_bytes(b"")
    if tags is not None:
        (directory / ".tags.json").write_text(json.dumps([{"name": t} for t in tags]))
    return directory


@pytest.fixture
def library(tmp_path):
    """
    A library on disk with a 'holidays' collection:

        a #beach.jpg, b #beach #sun.jpg, c.png, notes #trip.md
    and registry tags: beach, sun, trip, vacation.
    """
    make_collection(
        tmp_path, "holidays",
        ["a #beach.jpg", "b #beach #sun.jpg", "c.png", "notes #trip.md"],
        tags=["beach", "sun", "trip", "vacation"],
    )
    (tmp_path / "holidays" / "notes #trip.md").write_text("Pack sunscreen", encoding="utf-8")
    tf = Tagfolio(tmp_path)
    yield tf
    tf.close()


@pytest.fixture
def holidays():
    """Encoded token of the 'holidays' collection."""
    return collection_token("holidays")
