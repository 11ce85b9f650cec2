"""
Cache package for asset persistence.

This package provides:
- Key codec (keys.py): asset path <-> flat storage key
- Persistent store (file_store.py): quota-limited flat directory with atomic writes
- Settings store (kv_store.py): SQLite-backed key-value settings
- Synchronizer (sync.py): version-triggered purge of non-user entries
"""

from blockassets.cache.base import PersistentStore, SettingsStore
from blockassets.cache.file_store import FileSystemStore
from blockassets.cache.keys import decode_key, encode_key, is_user_path
from blockassets.cache.kv_store import InMemorySettingsStore, SQLiteSettingsStore
from blockassets.cache.sync import CacheSynchronizer

__all__ = [
    "CacheSynchronizer",
    "FileSystemStore",
    "InMemorySettingsStore",
    "PersistentStore",
    "SQLiteSettingsStore",
    "SettingsStore",
    "decode_key",
    "encode_key",
    "is_user_path",
]
