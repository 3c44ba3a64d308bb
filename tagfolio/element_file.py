"""
A single element's file, opened for editing.

Tag and name changes are staged in memory and written by commit(), which
renames the file to the newly encoded basename.
"""

import logging

from .basename import decode, encode, normalize_tag_name, validate_element_name
from .errors import DuplicateTagError, ElementConflictError
from .filesystem import FilesystemProtocol, join_path

logger = logging.getLogger(__name__)


class ElementFile:
    """
    Mutable view of one element file.

    remove_tag() on a tag the element does not carry is a silent no-op, so
    mutators can be applied blindly. add_tag() on a tag it already carries
    raises DuplicateTagError.
    """

    def __init__(self, filesystem: FilesystemProtocol, collection_path: str, basename: str):
        """
        Args:
            filesystem: Storage adapter holding the file
            collection_path: Decoded collection directory, relative to the root
            basename: Current basename of the element file
        """
        self._fs = filesystem
        self._collection_path = collection_path
        self._basename = basename

        decoded = decode(basename)
        self._type = decoded.type
        self._name = decoded.name
        self._tags = list(decoded.tags)
        self._original_tags = decoded.tags
        self._extension = decoded.extension

    @property
    def basename(self) -> str:
        return self._basename

    @property
    def path(self) -> str:
        return join_path(self._collection_path, self._basename)

    @property
    def name(self) -> str:
        return self._name

    @property
    def tags(self) -> tuple[str, ...]:
        return tuple(sorted(self._tags))

    @property
    def extension(self) -> str:
        return self._extension

    def has_tag(self, tag_name: str) -> bool:
        return normalize_tag_name(tag_name) in self._tags

    def add_tag(self, tag_name: str) -> "ElementFile":
        name = normalize_tag_name(tag_name)
        if name in self._tags:
            raise DuplicateTagError(name, where=self._basename)
        self._tags.append(name)
        return self

    def remove_tag(self, tag_name: str) -> "ElementFile":
        name = normalize_tag_name(tag_name)
        if name in self._tags:
            self._tags.remove(name)
        else:
            logger.debug("Tag %r not on %r, nothing to remove", name, self._basename)
        return self

    def set_tags(self, tag_names) -> "ElementFile":
        self._tags = sorted({normalize_tag_name(t) for t in tag_names})
        return self

    def rename(self, name: str) -> "ElementFile":
        self._name = validate_element_name(name)
        return self

    def target_basename(self) -> str:
        """The basename the staged state encodes to.

        An element with no name that loses all its tags is named after its
        first original tag, so `#only.jpg` without `only` becomes `only.jpg`.
        """
        name = self._name
        if not name and not self._tags and self._original_tags:
            name = self._original_tags[0]
        return encode(name, self._tags, self._extension)

    def commit(self) -> str:
        """
        Rename the file to match the staged name and tags.

        Calling it again without further changes does nothing.

        Returns:
            The element's basename after the commit

        Raises:
            ElementConflictError: if another file already has the new basename
        """
        new_basename = self.target_basename()
        if new_basename == self._basename:
            return self._basename

        new_path = join_path(self._collection_path, new_basename)
        # Case-only renames on case-insensitive disks see the source as the target
        if self._fs.exists(new_path) and not self._fs.same_file(self.path, new_path):
            raise ElementConflictError(self._basename, new_basename)

        self._fs.rename(self.path, new_path)
        logger.info("Renamed element %r -> %r in %r",
                    self._basename, new_basename, self._collection_path)
        self._basename = new_basename
        self._name = decode(new_basename).name
        return new_basename
