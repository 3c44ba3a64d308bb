"""
Tag operations on collections.

Renaming or deleting a tag touches two things: the collection's tag registry
and the basename of every element carrying the tag. The steps always run in
this order, holding the collection's registry lock throughout:

    1. register the new tag (fails on a name collision, nothing touched yet)
    2. rename every element carrying the old tag
    3. unregister the old tag and save the registry

so a failure can leave the old and the new tag both registered, but never an
element carrying a tag the registry does not know. Nothing is persisted
before step 3; a failure before then discards the in-memory registry.

Collections and tag names are addressed with base64url tokens, as received
from the HTTP layer.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Union

from . import encoding
from .basename import normalize_tag_name
from .element_file import ElementFile
from .element_service import BatchResult, ElementService
from .errors import BadEncodingError, InvalidTagNameError, TagNotFoundError
from .forms import RequestErrors, TagRequest, parse_request
from .tag_registry import TagRegistry
from .types import CollectionRef, Element, Tag

logger = logging.getLogger(__name__)


@dataclass
class TagUpdate:
    """Result of a tag update: the resulting tag and the element renames."""
    tag: Tag
    batch: BatchResult = field(default_factory=BatchResult)

    def to_dict(self) -> dict:
        return {"tag": self.tag.to_dict(), "batch": self.batch.to_dict()}


def _carries(name: str):
    def predicate(element: Element) -> bool:
        return element.has_tag(name)
    return predicate


def _replace_tag(old_name: str, new_name: str):
    def mutator(element_file: ElementFile) -> None:
        element_file.remove_tag(old_name)
        if not element_file.has_tag(new_name):
            element_file.add_tag(new_name)
    return mutator


def _drop_tag(name: str):
    def mutator(element_file: ElementFile) -> None:
        element_file.remove_tag(name)
    return mutator


class TagService:
    """Create, rename and delete the tags of collections."""

    def __init__(self, elements: ElementService, registry: TagRegistry):
        self._elements = elements
        self._registry = registry

    def _collection(self, encoded_collection: str) -> CollectionRef:
        collection = CollectionRef.from_encoded(encoded_collection)
        self._elements.require_collection(collection)
        return collection

    @staticmethod
    def _tag_name(encoded_tag: str) -> str:
        """Decode a tag token to its canonical name.

        A name that could never have been registered is reported as not found.
        """
        if not encoding.is_valid(encoded_tag):
            raise BadEncodingError(encoded_tag, "badly encoded tag name")
        name = encoding.decode(encoded_tag)
        try:
            return normalize_tag_name(name)
        except InvalidTagNameError:
            raise TagNotFoundError(name) from None

    @contextmanager
    def _session(self, collection: CollectionRef) -> Iterator[None]:
        """Hold the collection lock on a freshly loaded registry.

        Unsaved registry changes are discarded if the block raises.
        """
        with self._registry.lock(collection.path):
            self._registry.load(collection.path)
            try:
                yield
            except BaseException:
                self._registry.discard(collection.path)
                raise

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list(self, encoded_collection: str) -> list[Tag]:
        collection = self._collection(encoded_collection)
        with self._session(collection):
            return self._registry.get_all(collection.path)

    def get(self, encoded_collection: str, encoded_tag: str) -> Tag:
        """
        Raises:
            BadEncodingError: if either token is malformed
            TagNotFoundError: if the tag is not registered
        """
        collection = self._collection(encoded_collection)
        name = self._tag_name(encoded_tag)
        with self._session(collection):
            return self._registry.get(collection.path, name)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(self, encoded_collection: str, data: Any) -> Union[Tag, RequestErrors]:
        """
        Register a new tag.

        Raises:
            DuplicateTagError: if the name is already registered
        """
        collection = self._collection(encoded_collection)
        form = parse_request(TagRequest, data)
        if isinstance(form, RequestErrors):
            return form

        with self._session(collection):
            tag = self._registry.add(collection.path, Tag(form.name))
            self._registry.save(collection.path)
        logger.info("Created tag %r in %r", tag.name, collection.path)
        return tag

    def update(
        self,
        encoded_collection: str,
        encoded_tag: str,
        data: Any,
    ) -> Union[TagUpdate, RequestErrors]:
        """
        Rename a tag and every element carrying it.

        Fields missing from data keep their current value. Renaming a tag to
        its own name returns it unchanged without touching anything.

        Raises:
            TagNotFoundError: if the tag is not registered
            DuplicateTagError: if the new name is already registered; no
                element is renamed in that case
        """
        collection = self._collection(encoded_collection)
        name = self._tag_name(encoded_tag)

        with self._session(collection):
            old_tag = self._registry.get(collection.path, name)

            submitted = {"name": old_tag.name, **data} if isinstance(data, dict) else data
            form = parse_request(TagRequest, submitted)
            if isinstance(form, RequestErrors):
                return form
            if form.name == old_tag.name:
                return TagUpdate(old_tag)

            new_tag = self._registry.add(collection.path, Tag(form.name))
            batch = self._elements.batch_rename(
                collection,
                _carries(old_tag.name),
                _replace_tag(old_tag.name, new_tag.name),
            )
            self._registry.remove(collection.path, old_tag)
            self._registry.save(collection.path)

        logger.info("Renamed tag %r -> %r in %r (%d elements renamed, %d failed)",
                    old_tag.name, new_tag.name, collection.path,
                    len(batch.renamed), len(batch.failed))
        return TagUpdate(new_tag, batch)

    def delete(self, encoded_collection: str, encoded_tag: str) -> BatchResult:
        """
        Unregister a tag and remove it from every element carrying it.

        Raises:
            TagNotFoundError: if the tag is not registered
        """
        collection = self._collection(encoded_collection)
        name = self._tag_name(encoded_tag)

        with self._session(collection):
            tag = self._registry.get(collection.path, name)
            batch = self._elements.batch_rename(collection, _carries(tag.name), _drop_tag(tag.name))
            self._registry.remove(collection.path, tag)
            self._registry.save(collection.path)

        logger.info("Deleted tag %r in %r (%d elements renamed, %d failed)",
                    tag.name, collection.path, len(batch.renamed), len(batch.failed))
        return batch

    def reconcile(self, encoded_collection: str) -> list[Tag]:
        """
        Register every tag found on an element but missing from the registry.

        Returns the tags that were added, in the order they were found.
        """
        collection = self._collection(encoded_collection)
        added: list[Tag] = []
        with self._session(collection):
            for element in self._elements.list(collection):
                for name in element.tags:
                    if not self._registry.has(collection.path, name):
                        added.append(self._registry.add(collection.path, Tag(name)))
            if added:
                self._registry.save(collection.path)
        if added:
            logger.info("Registered %d orphaned tags in %r", len(added), collection.path)
        return added
