"""Utility modules for the asset cache."""

from blockassets.utils.digest import HASHERS, Hasher, get_hasher, md5_hex, sha256_hex

__all__ = [
    "HASHERS",
    "Hasher",
    "get_hasher",
    "md5_hex",
    "sha256_hex",
]
