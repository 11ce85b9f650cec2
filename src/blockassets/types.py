"""
Core types for the asset cache.

This module defines the data structures shared across components:
- AssetRecord: the result of every read, write and update
- RemoteManifestEntry: an asset eligible for remote update
- UpdateSummary: the outcome of one update cycle
- SyncState: the cache synchronizer's lifecycle
- Helper functions for ID generation
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from uuid6 import uuid7

# Hierarchical asset identifier, e.g. "assets/ublock/filters.txt"
AssetPath = str

# Generic marker reported when a read or fetch fails at every layer
GENERIC_ERROR = "Error"


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "cycle")

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


class SyncState(str, Enum):
    """Lifecycle of the cache synchronizer."""

    UNCHECKED = "unchecked"
    CHECKED = "checked"


@dataclass(frozen=True)
class AssetRecord:
    """Immutable result of an asset operation.

    ``error`` is None on success. On failure ``content`` is usually empty,
    except when an update fetched and verified content but could not store
    it: the fresh content is still returned so the caller may use it.
    """

    path: AssetPath
    content: str = ""
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the operation succeeded."""
        return self.error is None

    @classmethod
    def failed(cls, path: AssetPath, error: str = GENERIC_ERROR, content: str = "") -> AssetRecord:
        """Create a failed record."""
        return cls(path=path, content=content, error=error)


@dataclass(frozen=True)
class RemoteManifestEntry:
    """An asset that can be refreshed from the remote root."""

    path: AssetPath
    expected_hash: str | None = None
    title: str | None = None


@dataclass(frozen=True)
class UpdateSummary:
    """Outcome of one update cycle over a manifest."""

    cycle_id: str
    records: tuple[AssetRecord, ...]
    skipped: tuple[AssetPath, ...] = ()

    @property
    def updated_count(self) -> int:
        """Number of assets committed to the cache."""
        return sum(1 for r in self.records if r.ok)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records if not r.ok)

    @property
    def skipped_count(self) -> int:
        return len(self.skipped)
