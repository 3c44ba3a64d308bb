"""
tagfolio: collections of tagged files, with the tags kept in the file names.

    from tagfolio import Tagfolio, collection_token
    from tagfolio.encoding import encode

    with Tagfolio("~/pictures") as tf:
        coll = collection_token("holidays")
        tf.tags.update(coll, encode("beach"), {"name": "coast"})
"""

from .api import Tagfolio, collection_token
from .types import Element, ElementType, Tag

__all__ = ["Tagfolio", "collection_token", "Element", "ElementType", "Tag"]
