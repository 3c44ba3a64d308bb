"""
Data types for tagged collections.

Elements are not stored anywhere on their own: each one is rebuilt from a
file's basename and the metadata the filesystem reports for it.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum

from . import encoding


class ElementType(str, Enum):
    """The closed set of element kinds, derived from the file extension."""
    IMAGE = "image"
    NOTE = "note"
    LINK = "link"
    COLORS = "colors"


EXTENSIONS_BY_TYPE: dict[ElementType, tuple[str, ...]] = {
    ElementType.IMAGE: ("jpg", "jpeg", "png", "gif"),
    ElementType.NOTE: ("txt", "md"),
    ElementType.LINK: ("link",),
    ElementType.COLORS: ("colors",),
}


@dataclass(frozen=True)
class ContentPolicy:
    """How an element type treats the content of its file."""
    should_load_content: bool
    encoding: str = "utf-8"


# Images are served through the proxy, colors are rendered from the name.
_CONTENT_POLICIES = {
    ElementType.IMAGE: ContentPolicy(should_load_content=False),
    ElementType.NOTE: ContentPolicy(should_load_content=True),
    ElementType.LINK: ContentPolicy(should_load_content=True),
    ElementType.COLORS: ContentPolicy(should_load_content=False),
}


def content_policy(element_type: ElementType) -> ContentPolicy:
    return _CONTENT_POLICIES[ElementType(element_type)]


@dataclass(frozen=True)
class FileMeta:
    """A file entry as reported by the filesystem adapter."""
    path: str
    size: int
    timestamp: float

    @property
    def basename(self) -> str:
        return self.path.rsplit("/", 1)[-1]


@dataclass(frozen=True)
class CollectionRef:
    """A collection directory, relative to the library root."""
    path: str

    @classmethod
    def from_path(cls, path: str) -> "CollectionRef":
        """
        Raises:
            BadEncodingError: if the path is empty or has '.'/'..' segments
        """
        from .errors import BadEncodingError

        segments = path.strip("/").split("/")
        if any(s in ("", ".", "..") for s in segments):
            raise BadEncodingError(path, "invalid collection path")
        return cls("/".join(segments))

    @classmethod
    def from_encoded(cls, token: str) -> "CollectionRef":
        """Decode a base64url collection token."""
        return cls.from_path(encoding.decode(token))

    @property
    def encoded(self) -> str:
        return encoding.encode(self.path)

    def __str__(self) -> str:
        return self.path


@dataclass(frozen=True)
class Tag:
    """A tag registered in a collection."""
    name: str

    def to_dict(self) -> dict:
        return {"name": self.name}

    @classmethod
    def from_dict(cls, d: dict) -> "Tag":
        return cls(name=d["name"])

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class Element:
    """
    One element of a collection, decoded from its file.

    This is a read-only snapshot. To change an element's name or tags, open
    it as an ElementFile and commit, which renames the file.

    Attributes:
        type: Element kind, decided by the extension alone
        name: Display name (basename without tags or extension)
        tags: Sorted, de-duplicated tag names
        extension: Extension as spelled in the basename
        size: File size in bytes
        updated: Last modification time (UTC)
        collection: Encoded collection path the element belongs to
        basename: Current basename on disk
    """
    type: ElementType
    name: str
    tags: tuple[str, ...] = field(default_factory=tuple)
    extension: str = ""
    size: int = 0
    updated: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    collection: str = ""
    basename: str = ""

    @classmethod
    def from_meta(cls, meta: FileMeta, collection: str) -> "Element":
        """
        Build an element from filesystem metadata.

        Raises:
            UnsupportedTypeError: if the extension maps to no element type
        """
        from .basename import decode

        decoded = decode(meta.basename)
        return cls(
            type=decoded.type,
            name=decoded.name,
            tags=decoded.tags,
            extension=decoded.extension,
            size=meta.size,
            updated=datetime.fromtimestamp(meta.timestamp, tz=timezone.utc),
            collection=collection,
            basename=meta.basename,
        )

    @property
    def encoded_basename(self) -> str:
        return encoding.encode(self.basename)

    @property
    def proxy_url(self) -> str:
        return f"/proxy/{self.collection}/{self.encoded_basename}"

    def has_tag(self, name: str) -> bool:
        return name in self.tags

    def to_dict(self) -> dict:
        """Serialize to JSON-ready dict."""
        d = asdict(self)
        d["type"] = self.type.value
        d["tags"] = list(self.tags)
        d["updated"] = self.updated.strftime("%Y-%m-%dT%H:%M:%S")
        d["encoded_basename"] = self.encoded_basename
        d["proxy_url"] = self.proxy_url
        return d

    def __str__(self) -> str:
        tags = " ".join(f"#{t}" for t in self.tags)
        return f"{self.name} [{self.type.value}] {tags}".rstrip()
