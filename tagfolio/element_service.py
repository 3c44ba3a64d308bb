"""
Elements of a collection.

Elements are enumerated from the collection directory on every call.
batch_rename() applies one edit to every element matching a predicate,
renaming the files concurrently and reporting each failure instead of
stopping at the first one.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Optional, Union

from . import encoding
from .basename import normalize_tag_name
from .config import DEFAULT_RENAME_WORKERS
from .element_file import ElementFile
from .errors import (
    CollectionNotFoundError,
    ElementConflictError,
    ElementNotFoundError,
    InvalidElementNameError,
    InvalidTagNameError,
    UnsupportedTypeError,
)
from .filesystem import FilesystemProtocol, join_path
from .forms import ElementRequest, RequestErrors, parse_request
from .tag_registry import DEFAULT_REGISTRY_FILENAME, TEMP_SUFFIX
from .types import CollectionRef, Element, FileMeta, content_policy

logger = logging.getLogger(__name__)

Predicate = Callable[[Element], bool]
Mutator = Callable[[ElementFile], None]


@dataclass(frozen=True)
class RenamedElement:
    """An element renamed by a batch."""
    old: str
    new: str


@dataclass(frozen=True)
class ElementFailure:
    """An element a batch could not rename."""
    basename: str
    error: Exception

    def to_dict(self) -> dict:
        return {
            "basename": self.basename,
            "error": type(self.error).__name__,
            "message": str(self.error),
        }


@dataclass
class BatchResult:
    """
    Outcome of batch_rename().

    Attributes:
        renamed: Elements whose file was renamed
        unchanged: Matching elements whose basename did not change
        failed: Matching elements left as they were, with the error
    """
    renamed: list[RenamedElement] = field(default_factory=list)
    unchanged: list[str] = field(default_factory=list)
    failed: list[ElementFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def matched(self) -> int:
        return len(self.renamed) + len(self.unchanged) + len(self.failed)

    def to_dict(self) -> dict:
        return {
            "renamed": [{"old": r.old, "new": r.new} for r in self.renamed],
            "unchanged": list(self.unchanged),
            "failed": [f.to_dict() for f in self.failed],
        }


class ElementService:
    """Enumerate and edit the elements of collections."""

    def __init__(
        self,
        filesystem: FilesystemProtocol,
        *,
        registry_filename: str = DEFAULT_REGISTRY_FILENAME,
        max_workers: int = DEFAULT_RENAME_WORKERS,
    ):
        self._fs = filesystem
        self._reserved = {registry_filename, registry_filename + TEMP_SUFFIX}
        self._max_workers = max(1, max_workers)

    # -------------------------------------------------------------------------
    # Enumeration
    # -------------------------------------------------------------------------

    def require_collection(self, collection: CollectionRef) -> None:
        """Raises CollectionNotFoundError unless the collection directory exists."""
        if not self._fs.is_dir(collection.path):
            raise CollectionNotFoundError(collection.path)

    def _list_files(self, collection: CollectionRef) -> list[FileMeta]:
        self.require_collection(collection)
        return [
            meta for meta in self._fs.list(collection.path)
            if not meta.basename.startswith(".") and meta.basename not in self._reserved
        ]

    def list(self, collection: CollectionRef, tag: Optional[str] = None) -> list[Element]:
        """
        All supported elements of a collection, sorted by basename.

        Files with unsupported extensions are skipped.

        Args:
            collection: Collection to enumerate
            tag: Only return elements carrying this tag, spelled either way
                (`Summer_Trip` or `Summer Trip`)
        """
        if tag is not None:
            try:
                tag = normalize_tag_name(tag)
            except InvalidTagNameError:
                logger.debug("No element can carry tag %r", tag)
                return []

        elements = []
        for meta in self._list_files(collection):
            try:
                element = Element.from_meta(meta, collection.encoded)
            except UnsupportedTypeError:
                logger.debug("Skipping unsupported file %s", meta.path)
                continue
            if tag is None or element.has_tag(tag):
                elements.append(element)
        elements.sort(key=lambda e: e.basename)
        return elements

    def find(self, collection: CollectionRef, basename: str) -> Element:
        """
        Look up an element by its plain basename.

        Raises:
            ElementNotFoundError: if no such file exists
            UnsupportedTypeError: if the file is not an element
        """
        for meta in self._list_files(collection):
            if meta.basename == basename:
                return Element.from_meta(meta, collection.encoded)
        raise ElementNotFoundError(basename)

    def get(self, collection: CollectionRef, encoded_basename: str) -> Element:
        """Look up an element by its encoded basename."""
        return self.find(collection, encoding.decode(encoded_basename))

    def open(self, collection: CollectionRef, element: Element) -> ElementFile:
        return ElementFile(self._fs, collection.path, element.basename)

    # -------------------------------------------------------------------------
    # Batch rename
    # -------------------------------------------------------------------------

    def batch_rename(
        self,
        collection: CollectionRef,
        predicate: Predicate,
        mutator: Mutator,
    ) -> BatchResult:
        """
        Apply mutator to every element matching predicate and commit.

        Matching elements are renamed on a thread pool; this returns only
        once every rename has finished or failed. Two elements of one batch
        may not claim the same new basename: whichever claims it later fails
        with ElementConflictError.
        """
        matches = [e for e in self.list(collection) if predicate(e)]
        result = BatchResult()
        if not matches:
            return result

        claimed: set[str] = set()
        claim_lock = threading.Lock()

        def apply(element: Element) -> RenamedElement:
            element_file = self.open(collection, element)
            mutator(element_file)
            target = element_file.target_basename()
            if target != element.basename:
                with claim_lock:
                    if target in claimed:
                        raise ElementConflictError(element.basename, target)
                    claimed.add(target)
            return RenamedElement(element.basename, element_file.commit())

        workers = min(self._max_workers, len(matches))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="tagfolio-rename") as pool:
            futures = {pool.submit(apply, e): e for e in matches}
            for future in as_completed(futures):
                element = futures[future]
                try:
                    renamed = future.result()
                except Exception as e:
                    logger.warning("Failed to rename %r in %r: %s", element.basename, collection.path, e)
                    result.failed.append(ElementFailure(element.basename, e))
                    continue
                if renamed.old == renamed.new:
                    result.unchanged.append(renamed.old)
                else:
                    result.renamed.append(renamed)

        result.renamed.sort(key=lambda r: r.old)
        result.unchanged.sort()
        result.failed.sort(key=lambda f: f.basename)
        logger.info("Batch rename in %r: %d renamed, %d unchanged, %d failed",
                    collection.path, len(result.renamed), len(result.unchanged), len(result.failed))
        return result

    # -------------------------------------------------------------------------
    # Single elements
    # -------------------------------------------------------------------------

    def update(
        self,
        collection: CollectionRef,
        encoded_basename: str,
        data: dict,
    ) -> Union[Element, RequestErrors]:
        """
        Rename an element and/or replace its tag set.

        Returns the updated element, or RequestErrors when the request is
        invalid (the file is then left untouched).
        """
        element = self.get(collection, encoded_basename)
        form = parse_request(ElementRequest, data)
        if isinstance(form, RequestErrors):
            return form

        element_file = self.open(collection, element)
        if form.name is not None:
            element_file.rename(form.name)
        if form.tags is not None:
            element_file.set_tags(form.tags)
        try:
            new_basename = element_file.commit()
        except InvalidElementNameError as e:
            return RequestErrors({"name": [str(e)]})
        return self.find(collection, new_basename)

    def add_tag(self, collection: CollectionRef, encoded_basename: str, tag_name: str) -> Element:
        """
        Raises:
            DuplicateTagError: if the element already carries the tag
        """
        element = self.get(collection, encoded_basename)
        new_basename = self.open(collection, element).add_tag(tag_name).commit()
        return self.find(collection, new_basename)

    def remove_tag(self, collection: CollectionRef, encoded_basename: str, tag_name: str) -> Element:
        """Removing a tag the element does not carry leaves it unchanged."""
        element = self.get(collection, encoded_basename)
        new_basename = self.open(collection, element).remove_tag(tag_name).commit()
        return self.find(collection, new_basename)

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    def get_content(self, collection: CollectionRef, encoded_basename: str) -> Optional[str]:
        """Text content for types that carry it (notes, links), else None."""
        element = self.get(collection, encoded_basename)
        policy = content_policy(element.type)
        if not policy.should_load_content:
            return None
        data = self._fs.read(join_path(collection.path, element.basename))
        return data.decode(policy.encoding)

    def set_content(self, collection: CollectionRef, encoded_basename: str, content: str) -> Element:
        """Replace the text content of a note or link; other types ignore it."""
        element = self.get(collection, encoded_basename)
        policy = content_policy(element.type)
        if not policy.should_load_content:
            logger.debug("%s elements carry no content, ignoring write to %r",
                         element.type.value, element.basename)
            return element
        self._fs.write(join_path(collection.path, element.basename), content.encode(policy.encoding))
        return self.find(collection, element.basename)
