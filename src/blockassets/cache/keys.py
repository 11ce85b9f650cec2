"""
Mapping between hierarchical asset paths and flat storage keys.

The persistent store is a single flat directory, so path separators are
replaced by a multi-character marker. Characters that could form the marker
(``_``), the escape character itself (``%``) and a leading ``.`` (reserved for
the store's own staging entries) are percent-escaped first, which keeps the
mapping bijective.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath

from blockassets.exceptions import PackageError
from blockassets.types import AssetPath

SEPARATOR_MARKER = "___"

_ESCAPES = {"%": "%25", "_": "%5F"}
_UNESCAPE_RE = re.compile(r"%(25|5F|2E)")
_UNESCAPES = {"25": "%", "5F": "_", "2E": "."}


def _escape_segment(segment: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in segment)


def encode_key(path: AssetPath) -> str:
    """Flatten an asset path into a storage key.

    Args:
        path: Hierarchical asset path, e.g. "assets/ublock/filters.txt".

    Returns:
        The storage key, e.g. "assets___ublock___filters.txt".

    Raises:
        PackageError: If the path is empty or contains a NUL character.
    """
    if not path:
        raise PackageError("Asset path must not be empty")
    if "\x00" in path:
        raise PackageError("Asset path must not contain NUL", context={"path": path})

    key = SEPARATOR_MARKER.join(_escape_segment(s) for s in path.split("/"))
    if key.startswith("."):
        key = "%2E" + key[1:]
    return key


def decode_key(key: str) -> AssetPath:
    """Inverse of encode_key."""
    segments = key.split(SEPARATOR_MARKER)
    return "/".join(
        _UNESCAPE_RE.sub(lambda m: _UNESCAPES[m.group(1)], s) for s in segments
    )


def is_user_path(path: AssetPath, namespace: str = "assets/user") -> bool:
    """Whether a path lies strictly below the user namespace.

    Segment-wise comparison: "assets/user/filters.txt" is a user path,
    "assets/username.txt" and "assets/user" itself are not.
    """
    prefix = PurePosixPath(namespace).parts
    parts = PurePosixPath(path).parts
    return len(parts) > len(prefix) and parts[: len(prefix)] == prefix
