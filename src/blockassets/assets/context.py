"""
Per-process asset context.

AssetContext is constructed once at process start and owns everything the
asset subsystem shares: the lazily opened persistent store, the HTTP
fetcher, the settings store and the synchronizer. Components receive the
context's store provider instead of reaching for module-level state.

Typical use:

    async with AssetContext.from_settings(get_settings()) as assets:
        record = await assets.get("assets/ublock/filters.txt")
"""

from __future__ import annotations

import asyncio
from typing import Iterable

from blockassets.assets.bundled import BundledReader
from blockassets.assets.reader import AssetReader
from blockassets.assets.updater import AssetUpdater
from blockassets.cache.base import PersistentStore, SettingsStore
from blockassets.cache.file_store import FileSystemStore
from blockassets.cache.kv_store import SQLiteSettingsStore
from blockassets.cache.sync import CacheSynchronizer
from blockassets.config import Settings
from blockassets.exceptions import StorageError
from blockassets.logging import get_logger
from blockassets.retrieval.fetch import RemoteFetcher
from blockassets.types import AssetPath, AssetRecord, RemoteManifestEntry, UpdateSummary
from blockassets.utils.digest import Hasher, get_hasher, md5_hex

logger = get_logger(__name__)


class AssetContext:
    """Owns the shared resources of the asset cache for one process."""

    def __init__(
        self,
        store: PersistentStore,
        settings_store: SettingsStore,
        bundled: BundledReader,
        fetcher: RemoteFetcher,
        current_version: str,
        hasher: Hasher = md5_hex,
        user_namespace: str = "assets/user",
        update_concurrency: int = 4,
    ) -> None:
        """Initialize the context.

        Args:
            store: Persistent store, opened on first use.
            settings_store: Key-value store for the cache version marker.
            bundled: Reader for the package's bundled assets.
            fetcher: Remote fetcher for the configured remote root.
            current_version: Version of the running package.
            hasher: Digest used to verify updates.
            user_namespace: Path prefix of user-authored assets.
            update_concurrency: Maximum concurrent fetches per update cycle.
        """
        self._store = store
        self._store_handle: PersistentStore | None = None
        self._store_lock = asyncio.Lock()
        self.settings_store = settings_store
        self.fetcher = fetcher
        self.update_concurrency = update_concurrency
        self.synchronizer = CacheSynchronizer(
            settings_store,
            self.store,
            current_version=current_version,
            user_namespace=user_namespace,
        )
        self.reader = AssetReader(self.store, bundled, fetcher)
        self.updater = AssetUpdater(
            self.store, fetcher, hasher=hasher, user_namespace=user_namespace
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> AssetContext:
        """Build a context from application settings."""
        settings.ensure_directories()
        return cls(
            store=FileSystemStore(settings.store_dir, quota_bytes=settings.QUOTA_BYTES),
            settings_store=SQLiteSettingsStore(settings.settings_db_path),
            bundled=BundledReader(settings.BUNDLED_DIR),
            fetcher=RemoteFetcher(settings.REMOTE_ROOT, timeout=settings.FETCH_TIMEOUT),
            current_version=settings.package_version,
            hasher=get_hasher(settings.HASH_ALGORITHM),
            user_namespace=settings.USER_NAMESPACE,
            update_concurrency=settings.UPDATE_CONCURRENCY,
        )

    async def store(self) -> PersistentStore:
        """Return the opened persistent store, opening it on first demand.

        The first successful open is reused for the lifetime of the context.
        A failed open is raised to the caller and retried on the next call.

        Raises:
            StorageIOError: If the store cannot be opened.
        """
        if self._store_handle is not None:
            return self._store_handle
        async with self._store_lock:
            if self._store_handle is None:
                self._store_handle = await self._store.open()
                logger.debug("Persistent store acquired")
        return self._store_handle

    async def start(self) -> int:
        """Prepare the settings store and run the cache synchronizer.

        Returns:
            Number of cached entries purged.
        """
        try:
            await self.settings_store.init()
        except StorageError as e:
            # The synchronizer logs the failed version read and carries on
            logger.error("Settings store unavailable", error=str(e))
        return await self.synchronizer.synchronize()

    async def close(self) -> None:
        """Close the HTTP client and the settings store."""
        await self.fetcher.close()
        await self.settings_store.close()

    async def __aenter__(self) -> AssetContext:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def get(self, path: AssetPath) -> AssetRecord:
        """Local read: cache, then bundled copy."""
        return await self.reader.get(path)

    async def get_remote(self, path: AssetPath) -> AssetRecord:
        """Remote-only read."""
        return await self.reader.get_remote(path)

    async def put(self, path: AssetPath, content: str) -> AssetRecord:
        """Direct cache write, used for user-imported content."""
        return await self.updater.put(path, content)

    async def update(self, entry: RemoteManifestEntry) -> AssetRecord:
        """Fetch, verify and commit one asset."""
        return await self.updater.update(entry)

    async def update_many(
        self, entries: Iterable[RemoteManifestEntry], attempts: int = 1
    ) -> UpdateSummary:
        """Run one update cycle over a manifest."""
        return await self.updater.update_many(
            entries, concurrency=self.update_concurrency, attempts=attempts
        )
