"""
Library facade.

A Tagfolio wires the filesystem adapter, the tag registry and the two
services for one library root. It owns the operations log handler, so
close it (or use it as a context manager) when done.
"""

import logging
from pathlib import Path
from typing import Optional

from . import encoding
from .config import LibraryConfig, get_root, load_or_create_config
from .element_service import ElementService
from .filesystem import FilesystemProtocol, LocalFilesystem
from .tag_registry import TagRegistry
from .tag_service import TagService
from .types import CollectionRef

logger = logging.getLogger(__name__)


def collection_token(path: str) -> str:
    """Encode a collection path as the token the services expect."""
    return encoding.encode(path.strip("/"))


class Tagfolio:
    """
    Tagged collections under one library root.

    Attributes:
        elements: ElementService for listing and editing elements
        tags: TagService for registry-backed tag operations
    """

    def __init__(
        self,
        root: Optional[str | Path] = None,
        *,
        config: Optional[LibraryConfig] = None,
        filesystem: Optional[FilesystemProtocol] = None,
    ):
        """
        Args:
            root: Library root; defaults to TAGFOLIO_ROOT or the current directory
            config: Injected configuration (skips reading tagfolio.toml)
            filesystem: Injected storage adapter (defaults to the local disk)
        """
        if config is not None:
            self._config = config
            self._root = config.path
        else:
            self._root = get_root(Path(root) if root is not None else None)
            self._config = load_or_create_config(self._root)

        self._fs = filesystem if filesystem is not None else LocalFilesystem(self._root)
        self._registry = TagRegistry(self._fs, self._config.registry_filename)
        self.elements = ElementService(
            self._fs,
            registry_filename=self._config.registry_filename,
            max_workers=self._config.rename_workers,
        )
        self.tags = TagService(self.elements, self._registry)

        self._ops_log_handler = None
        if self._config.ops_log:
            from .logging_config import configure_ops_log
            self._ops_log_handler = configure_ops_log(self._root)
        logger.debug("Opened library at %s", self._root)

    @property
    def root(self) -> Path:
        return self._root

    @property
    def config(self) -> LibraryConfig:
        return self._config

    @property
    def filesystem(self) -> FilesystemProtocol:
        return self._fs

    @property
    def registry(self) -> TagRegistry:
        return self._registry

    def collection(self, path: str) -> CollectionRef:
        """
        Resolve a plain collection path relative to the root.

        Raises:
            BadEncodingError: if the path has empty, '.' or '..' segments
            CollectionNotFoundError: if the directory does not exist
        """
        collection = CollectionRef.from_path(path)
        self.elements.require_collection(collection)
        return collection

    def close(self) -> None:
        """Release the operations log handler."""
        if self._ops_log_handler is not None:
            logging.getLogger("tagfolio").removeHandler(self._ops_log_handler)
            self._ops_log_handler.close()
            self._ops_log_handler = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
