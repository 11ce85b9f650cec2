"""Content digests for verifying downloaded assets."""

from __future__ import annotations

import hashlib
from typing import Callable

from blockassets.exceptions import ConfigurationError

# Signature of a content hash function: text -> hex digest
Hasher = Callable[[str], str]


def md5_hex(text: str) -> str:
    """MD5 hex digest of the UTF-8 encoded text.

    Matches the checksums published in filter list manifests.
    """
    return hashlib.md5(text.encode("utf-8"), usedforsecurity=False).hexdigest()


def sha256_hex(text: str) -> str:
    """SHA-256 hex digest of the UTF-8 encoded text."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


HASHERS: dict[str, Hasher] = {
    "md5": md5_hex,
    "sha256": sha256_hex,
}


def get_hasher(name: str) -> Hasher:
    """Look up a hash function by algorithm name.

    Raises:
        ConfigurationError: If the algorithm is unknown.
    """
    try:
        return HASHERS[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown hash algorithm: {name}", context={"available": sorted(HASHERS)}
        ) from None
