"""
URL-safe tokens for collection paths, tag names and basenames.

Callers address collections and tags with base64url tokens (no padding), so
arbitrary names survive a URL path segment.
"""

import base64
import binascii
import re

from .errors import BadEncodingError

_TOKEN_RE = re.compile(r'^[A-Za-z0-9_-]+={0,2}$')


def encode(text: str) -> str:
    """Encode text as an unpadded base64url token."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def is_valid(token: str) -> bool:
    """Check whether a token decodes to UTF-8 text."""
    if not isinstance(token, str) or not _TOKEN_RE.match(token):
        return False
    try:
        _decode_bytes(token).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return False
    return True


def decode(token: str) -> str:
    """
    Decode a base64url token back to text.

    Raises:
        BadEncodingError: if the token is malformed
    """
    if not is_valid(token):
        raise BadEncodingError(token)
    return _decode_bytes(token).decode("utf-8")


def _decode_bytes(token: str) -> bytes:
    stripped = token.rstrip("=")
    padded = stripped + "=" * (-len(stripped) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))
