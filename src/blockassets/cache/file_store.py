"""
Filesystem-backed persistent asset store.

One regular file per storage key inside a single flat directory. Writes go
to a staging file inside the store root, are fsync'ed, then renamed over the
target with os.replace, so a crash mid-write never leaves a readable partial
entry. Blocking filesystem calls run in worker threads via asyncio.to_thread.
"""

from __future__ import annotations

import asyncio
import errno
import os
import tempfile
import threading
from pathlib import Path
from typing import AsyncIterator

from blockassets.cache.base import PersistentStore
from blockassets.exceptions import (
    NotFoundError,
    PackageError,
    QuotaExceededError,
    StorageIOError,
)
from blockassets.logging import get_logger

logger = get_logger(__name__)

DEFAULT_QUOTA_BYTES = 40 * 1024 * 1024

# Staging directory for in-flight writes; never listed as an entry
STAGING_DIR = ".staging"

_QUOTA_ERRNOS = {errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC)}


class FileSystemStore(PersistentStore):
    """Quota-limited flat directory of cached assets.

    Must be opened with ``await store.open()`` before use.
    """

    def __init__(self, root: str | Path, quota_bytes: int | None = DEFAULT_QUOTA_BYTES) -> None:
        """Initialize the store.

        Args:
            root: Directory holding one file per storage key.
            quota_bytes: Maximum total size of stored entries. None disables the check.
        """
        self.root = Path(root)
        self.staging_dir = self.root / STAGING_DIR
        self.quota_bytes = quota_bytes
        self._commit_lock = threading.Lock()
        self._opened = False

    async def open(self) -> FileSystemStore:
        """Create the store directories and verify they are writable.

        Raises:
            StorageIOError: If the store cannot be created or written.
        """
        await asyncio.to_thread(self._open_sync)
        logger.debug("Asset store opened", root=str(self.root), quota_bytes=self.quota_bytes)
        return self

    def _open_sync(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            self.staging_dir.mkdir(exist_ok=True)
            # Leftovers from an interrupted write
            for orphan in self.staging_dir.iterdir():
                orphan.unlink(missing_ok=True)
        except OSError as e:
            raise StorageIOError(
                "Cannot open asset store",
                context={"root": str(self.root), "operation": "open", "error": str(e)},
            ) from e
        if not os.access(self.root, os.W_OK):
            raise StorageIOError(
                "Asset store is not writable",
                context={"root": str(self.root), "operation": "open"},
            )
        self._opened = True

    def _ensure_open(self) -> None:
        if not self._opened:
            raise StorageIOError("Asset store not opened. Call open() first.")

    def _path(self, key: str) -> Path:
        self._ensure_open()
        if not key or "/" in key or "\x00" in key or key.startswith("."):
            raise PackageError("Invalid storage key", context={"key": key})
        return self.root / key

    async def read(self, key: str) -> str:
        return await asyncio.to_thread(self._read_sync, key)

    def _read_sync(self, key: str) -> str:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise NotFoundError("No cached entry", context={"key": key}) from e
        except (OSError, UnicodeDecodeError) as e:
            raise StorageIOError(
                "Cannot read cached entry",
                context={"key": key, "operation": "read", "error": str(e)},
            ) from e

    async def write_atomic(self, key: str, text: str) -> None:
        await asyncio.to_thread(self._write_sync, key, text)
        logger.debug("Stored entry", key=key, size=len(text))

    def _write_sync(self, key: str, text: str) -> None:
        target = self._path(key)
        data = text.encode("utf-8")
        tmp_path: str | None = None
        try:
            fd, tmp_path = tempfile.mkstemp(prefix="entry.", suffix=".tmp", dir=self.staging_dir)
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            # Quota check and rename must not interleave with another commit
            with self._commit_lock:
                self._check_quota(key, len(data))
                os.replace(tmp_path, target)
            tmp_path = None
        except OSError as e:
            if e.errno in _QUOTA_ERRNOS:
                raise QuotaExceededError(
                    "Storage is full",
                    context={"key": key, "operation": "write", "error": str(e)},
                ) from e
            raise StorageIOError(
                "Cannot write cached entry",
                context={"key": key, "operation": "write", "error": str(e)},
            ) from e
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    logger.warning("Could not remove staging file", path=tmp_path)

    def _check_quota(self, key: str, size: int) -> None:
        if self.quota_bytes is None:
            return
        required = self._usage_sync(exclude=key) + size
        if required > self.quota_bytes:
            raise QuotaExceededError(
                "Write would exceed store quota",
                context={
                    "key": key,
                    "quota_bytes": self.quota_bytes,
                    "required_bytes": required,
                },
            )

    def _usage_sync(self, exclude: str | None = None) -> int:
        total = 0
        with os.scandir(self.root) as entries:
            for entry in entries:
                if entry.name.startswith(".") or entry.name == exclude:
                    continue
                if entry.is_file(follow_symlinks=False):
                    total += entry.stat(follow_symlinks=False).st_size
        return total

    async def usage(self) -> int:
        """Total bytes currently held by stored entries."""
        self._ensure_open()
        try:
            return await asyncio.to_thread(self._usage_sync)
        except OSError as e:
            raise StorageIOError(
                "Cannot compute store usage",
                context={"root": str(self.root), "operation": "usage", "error": str(e)},
            ) from e

    async def remove(self, key: str) -> None:
        await asyncio.to_thread(self._remove_sync, key)

    def _remove_sync(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StorageIOError(
                "Cannot remove cached entry",
                context={"key": key, "operation": "remove", "error": str(e)},
            ) from e

    async def list_all(self) -> AsyncIterator[str]:
        self._ensure_open()
        try:
            keys = await asyncio.to_thread(self._scan_sync)
        except OSError as e:
            raise StorageIOError(
                "Cannot list asset store",
                context={"root": str(self.root), "operation": "list", "error": str(e)},
            ) from e
        for key in keys:
            yield key

    def _scan_sync(self) -> list[str]:
        with os.scandir(self.root) as entries:
            return sorted(
                entry.name
                for entry in entries
                if not entry.name.startswith(".") and entry.is_file(follow_symlinks=False)
            )
