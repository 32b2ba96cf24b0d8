"""
Boxing of raw binary values for JSON-safe conversation storage.

``json.dumps`` cannot encode ``bytes`` at all, and generic encoders that
fall back to iterating the buffer turn it into an object of numeric keys.
Boxing replaces each buffer with ``{"_base64": "<str>"}`` so the tree
survives any JSON round trip, and :func:`deserialize` restores the bytes.

A dict is treated as boxed only when ``_base64`` is its *single* key.  An
unrelated object shaped exactly like that is unboxed too when its value
happens to be valid base64; callers that store such objects must not pass
them through :func:`deserialize`.  Values that are not valid base64 are
left as they are.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

from unillm.conversation.meta import META_KEY

BOX_KEY = "_base64"


def is_binary(value: Any) -> bool:
    return isinstance(value, (bytes, bytearray, memoryview))


def is_boxed_binary(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and len(value) == 1
        and isinstance(value.get(BOX_KEY), str)
    )


def box(value: bytes | bytearray | memoryview) -> dict[str, str]:
    """Return the boxed form of a single binary value."""
    return {BOX_KEY: base64.b64encode(bytes(value)).decode("ascii")}


def unbox(value: dict[str, str]) -> bytes:
    """Decode a boxed value.  Raises ``binascii.Error`` on invalid base64."""
    return base64.b64decode(value[BOX_KEY], validate=True)


def serialize(tree: Any) -> Any:
    """Box every binary value found anywhere in *tree*."""
    if is_binary(tree):
        return box(tree)
    if isinstance(tree, (list, tuple)):
        return [serialize(item) for item in tree]
    if isinstance(tree, dict):
        return {
            key: value if key == META_KEY else serialize(value)
            for key, value in tree.items()
        }
    return tree


def deserialize(tree: Any) -> Any:
    """Replace every boxed value in *tree* with the decoded ``bytes``."""
    if is_boxed_binary(tree):
        try:
            return unbox(tree)
        except binascii.Error:
            return tree
    if isinstance(tree, (list, tuple)):
        return [deserialize(item) for item in tree]
    if isinstance(tree, dict):
        return {
            key: value if key == META_KEY else deserialize(value)
            for key, value in tree.items()
        }
    return tree


def contains_binary(tree: Any) -> bool:
    """Return ``True`` if a raw binary value is reachable from *tree*."""
    if is_binary(tree):
        return True
    if isinstance(tree, (list, tuple)):
        return any(contains_binary(item) for item in tree)
    if isinstance(tree, dict):
        return any(contains_binary(value) for value in tree.values())
    return False
