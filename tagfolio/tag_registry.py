"""
Per-collection tag registry.

Each collection directory holds one registry file (`.tags.json` by default),
a JSON array of `{"name": ...}` records in registry order. The registry is
loaded into memory, mutated there and flushed with save(), which writes a
temporary sibling file and renames it over the registry so readers never see
a half-written file.

A registry file that exists but cannot be parsed is reported as
RegistryCorruptError. It is never replaced by an empty registry.
"""

import json
import logging
import threading

from .basename import normalize_tag_name
from .errors import (
    DuplicateTagError,
    InvalidTagNameError,
    RegistryCorruptError,
    TagNotFoundError,
)
from .filesystem import FilesystemProtocol, join_path
from .types import Tag

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_FILENAME = ".tags.json"
TEMP_SUFFIX = ".tmp"


class TagRegistry:
    """
    In-memory tag lists per collection, backed by registry files.

    Collection arguments are decoded collection paths relative to the
    filesystem root. Tag names are normalized on the way in and compared
    exactly (case-sensitive).
    """

    def __init__(self, filesystem: FilesystemProtocol,
                 filename: str = DEFAULT_REGISTRY_FILENAME):
        self._fs = filesystem
        self._filename = filename
        self._tags: dict[str, list[Tag]] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._state_lock = threading.Lock()

    @property
    def filename(self) -> str:
        return self._filename

    def registry_path(self, collection: str) -> str:
        return join_path(collection, self._filename)

    def lock(self, collection: str) -> threading.RLock:
        """Re-entrant lock serializing registry work on one collection."""
        key = collection.strip("/")
        with self._state_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    # -------------------------------------------------------------------------
    # Loading and saving
    # -------------------------------------------------------------------------

    def load(self, collection: str) -> list[Tag]:
        """(Re)read the registry file, replacing any in-memory state."""
        with self.lock(collection):
            path = self.registry_path(collection)
            if self._fs.exists(path):
                tags = self._parse(path, self._fs.read(path))
            else:
                tags = []
            self._tags[collection.strip("/")] = tags
            return list(tags)

    def discard(self, collection: str) -> None:
        """Forget unsaved changes; the next access reloads from disk."""
        with self.lock(collection):
            self._tags.pop(collection.strip("/"), None)

    def save(self, collection: str) -> None:
        """Write the in-memory registry, atomically replacing the file."""
        with self.lock(collection):
            tags = self._current(collection)
            path = self.registry_path(collection)
            tmp_path = path + TEMP_SUFFIX
            payload = json.dumps([t.to_dict() for t in tags], ensure_ascii=False, indent=2)
            self._fs.write(tmp_path, (payload + "\n").encode("utf-8"))
            self._fs.rename(tmp_path, path)
            logger.debug("Saved %d tags to %s", len(tags), path)

    def _current(self, collection: str) -> list[Tag]:
        key = collection.strip("/")
        if key not in self._tags:
            self.load(collection)
        return self._tags[key]

    @staticmethod
    def _parse(path: str, data: bytes) -> list[Tag]:
        try:
            raw = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RegistryCorruptError(path, str(e)) from e
        if not isinstance(raw, list):
            raise RegistryCorruptError(path, "expected a JSON array")

        tags: list[Tag] = []
        seen: set[str] = set()
        for i, entry in enumerate(raw):
            if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
                raise RegistryCorruptError(path, f"entry {i} has no string 'name'")
            try:
                name = normalize_tag_name(entry["name"])
            except InvalidTagNameError as e:
                raise RegistryCorruptError(path, f"entry {i}: {e}") from e
            if name in seen:
                raise RegistryCorruptError(path, f"duplicate tag {name!r}")
            seen.add(name)
            tags.append(Tag(name))
        return tags

    # -------------------------------------------------------------------------
    # Queries and mutations
    # -------------------------------------------------------------------------

    def get_all(self, collection: str) -> list[Tag]:
        with self.lock(collection):
            return list(self._current(collection))

    def get(self, collection: str, name: str) -> Tag:
        """
        Raises:
            TagNotFoundError: if no tag has this name
        """
        with self.lock(collection):
            for tag in self._current(collection):
                if tag.name == name:
                    return tag
        raise TagNotFoundError(name)

    def has(self, collection: str, name: str) -> bool:
        try:
            self.get(collection, name)
        except TagNotFoundError:
            return False
        return True

    def add(self, collection: str, tag: Tag) -> Tag:
        """
        Append a tag. Nothing is written until save().

        Raises:
            InvalidTagNameError: if the name cannot be encoded
            DuplicateTagError: if the name is already registered
        """
        tag = Tag(normalize_tag_name(tag.name))
        with self.lock(collection):
            tags = self._current(collection)
            if any(t.name == tag.name for t in tags):
                raise DuplicateTagError(tag.name)
            tags.append(tag)
        logger.debug("Registered tag %r in %r", tag.name, collection)
        return tag

    def remove(self, collection: str, tag: Tag) -> None:
        """
        Raises:
            TagNotFoundError: if the tag is not registered
        """
        with self.lock(collection):
            tags = self._current(collection)
            for i, existing in enumerate(tags):
                if existing.name == tag.name:
                    del tags[i]
                    logger.debug("Unregistered tag %r in %r", tag.name, collection)
                    return
        raise TagNotFoundError(tag.name)
