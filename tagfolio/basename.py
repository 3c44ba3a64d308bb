"""
Packed basename encoding.

An element's name, tags and extension all live in its file's basename:

    sunset #Summer_Trip #beach.jpg
    ------ ------------ ------ ---
    name   tag          tag    extension

Tags are `#token` where the token has no whitespace and none of the
punctuation in TAG_FORBIDDEN_CHARS. Spaces inside a tag name are stored as
underscores. decode() and encode() are inverses on normalized basenames:
encode(*decode(b)) is the normalized form of b, and decoding that again gives
the same result.
"""

import re
from typing import Iterable, NamedTuple

from .errors import InvalidElementNameError, InvalidTagNameError, UnsupportedTypeError
from .types import EXTENSIONS_BY_TYPE, ElementType

TAG_PREFIX = "#"
TAG_SEPARATOR = " "

# Punctuation that ends a tag token (in addition to whitespace)
TAG_FORBIDDEN_CHARS = frozenset(".,/#!$%^&*;:{}=-`~()")

_TAG_TOKEN_RE = re.compile(r'#([^\s.,/#!$%^&*;:{}=\-`~()]+)')

# Whitespace other than a plain space cannot be stored in a tag
_TAG_BAD_WHITESPACE_RE = re.compile(r'[^\S ]')

_TYPE_BY_EXTENSION = {
    ext: element_type
    for element_type, extensions in EXTENSIONS_BY_TYPE.items()
    for ext in extensions
}


class DecodedBasename(NamedTuple):
    """The parts of a packed basename."""
    type: ElementType
    name: str
    tags: tuple[str, ...]
    extension: str


def type_for_extension(extension: str, basename: str | None = None) -> ElementType:
    """
    Look up the element type for an extension (case-insensitive).

    Raises:
        UnsupportedTypeError: if no type claims the extension
    """
    element_type = _TYPE_BY_EXTENSION.get(extension.lower())
    if element_type is None:
        raise UnsupportedTypeError(basename if basename is not None else extension)
    return element_type


def _collapse(text: str) -> str:
    return " ".join(text.split())


def normalize_tag_name(name: str) -> str:
    """Validate a tag name and return its canonical form.

    Underscores become spaces, runs of spaces collapse to one, and the result
    is trimmed, so `Summer_Trip` and ` Summer  Trip ` both give `Summer Trip`.

    Raises:
        InvalidTagNameError: for empty names, whitespace other than spaces,
            or any of TAG_FORBIDDEN_CHARS
    """
    if not isinstance(name, str):
        raise InvalidTagNameError(repr(name), "must be a string")
    if _TAG_BAD_WHITESPACE_RE.search(name):
        raise InvalidTagNameError(name, "contains whitespace other than spaces")
    bad = sorted(set(name) & TAG_FORBIDDEN_CHARS)
    if bad:
        raise InvalidTagNameError(name, f"contains invalid characters: {''.join(bad)}")
    normalized = _collapse(name.replace("_", " "))
    if not normalized:
        raise InvalidTagNameError(name, "is empty")
    return normalized


def _encode_tag(name: str) -> str:
    return TAG_PREFIX + name.replace(" ", "_")


def split_extension(basename: str) -> tuple[str, str]:
    """Split on the last dot. Raises UnsupportedTypeError if there is none."""
    stem, dot, extension = basename.rpartition(".")
    if not dot or not extension:
        raise UnsupportedTypeError(basename)
    return stem, extension


def decode(basename: str) -> DecodedBasename:
    """
    Parse a basename into type, name, tags and extension.

    Tags are sorted ascending and de-duplicated; the name has its whitespace
    collapsed and trimmed.

    Raises:
        UnsupportedTypeError: if the extension is missing or unknown
    """
    stem, extension = split_extension(basename)
    element_type = type_for_extension(extension, basename)

    found: set[str] = set()

    def _take(match: re.Match) -> str:
        tag = _collapse(match.group(1).replace("_", " "))
        if tag:
            found.add(tag)
        return ""

    name = _collapse(_TAG_TOKEN_RE.sub(_take, stem))
    return DecodedBasename(element_type, name, tuple(sorted(found)), extension)


def validate_element_name(name: str) -> str:
    """
    Return the collapsed element name, checking that it can be encoded.

    Raises:
        InvalidElementNameError: if the name would be read back as tags, or is
            not a valid single path component
    """
    name = _collapse(name)
    if "/" in name:
        raise InvalidElementNameError(name, "contains a path separator")
    if name.startswith("."):
        raise InvalidElementNameError(name, "starts with a dot")
    if _TAG_TOKEN_RE.search(name):
        raise InvalidElementNameError(name, "contains a #tag")
    return name


def encode(name: str, tags: Iterable[str], extension: str) -> str:
    """
    Pack name, tags and extension into a basename.

    Tags are normalized, de-duplicated and written in sorted order, each as
    `#tag_with_underscores`, separated from the name by single spaces.

    Raises:
        InvalidTagNameError: if any tag cannot be encoded
        InvalidElementNameError: if the name cannot be encoded
        UnsupportedTypeError: if the extension is unknown
    """
    type_for_extension(extension)
    name = validate_element_name(name)
    tag_names = sorted({normalize_tag_name(t) for t in tags})
    if not name and not tag_names:
        raise InvalidElementNameError(name, "name and tags are both empty")

    parts = [name] if name else []
    parts.extend(_encode_tag(t) for t in tag_names)
    return TAG_SEPARATOR.join(parts) + "." + extension


def normalize(basename: str) -> str:
    """Canonical spelling of a basename: encode(decode(basename))."""
    decoded = decode(basename)
    return encode(decoded.name, decoded.tags, decoded.extension)
