"""
Base classes for the persistent asset store and the settings store.

PersistentStore is the capability the rest of the package relies on: a flat,
quota-limited namespace of text entries with atomic replacement. SettingsStore
is the small key-value store that records which package version last owned
the cache.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator


class PersistentStore(ABC):
    """Abstract interface for persistent asset storage.

    Keys are flat storage keys (see ``blockassets.cache.keys``).
    """

    async def open(self) -> PersistentStore:
        """Acquire the backing storage. Called once before first use."""
        return self

    @abstractmethod
    async def read(self, key: str) -> str:
        """Read an entry as text.

        Raises:
            NotFoundError: If no entry exists.
            StorageIOError: For any other storage fault.
        """
        ...

    @abstractmethod
    async def write_atomic(self, key: str, text: str) -> None:
        """Replace an entry so that readers see either the old or new text.

        Raises:
            QuotaExceededError: If the write would exceed the quota.
            StorageIOError: For any other storage fault.
        """
        ...

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove an entry. Removing a missing entry is not an error."""
        ...

    @abstractmethod
    def list_all(self) -> AsyncIterator[str]:
        """Iterate over a snapshot of every stored key.

        The iterator is one-shot; call again for a fresh snapshot.
        """
        ...


class SettingsStore(ABC):
    """Abstract interface for the persisted key-value settings store."""

    @abstractmethod
    async def get_string(self, key: str) -> str | None:
        """Get a value, or None when unset."""
        ...

    @abstractmethod
    async def set_string(self, key: str, value: str) -> None:
        """Set a value."""
        ...

    async def init(self) -> None:
        """Prepare the store for use."""
        return None

    async def close(self) -> None:
        """Release any open resources."""
        return None
