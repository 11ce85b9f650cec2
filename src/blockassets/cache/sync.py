"""
Version-triggered cache purge.

Cached non-user assets always have a canonical source elsewhere (the bundled
copy or the remote root), so when the running package version differs from
the version that last owned the cache, they are all removed. User-authored
assets have no other source and are kept.

The check runs at most once per synchronizer instance.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

from blockassets.cache.base import PersistentStore, SettingsStore
from blockassets.cache.keys import decode_key, is_user_path
from blockassets.exceptions import StorageError
from blockassets.logging import get_logger, log_context
from blockassets.types import SyncState

logger = get_logger(__name__)

# Settings key holding the CacheVersionMarker
LAST_VERSION_KEY = "extensionLastVersion"

# Assumed owner of a cache that has never been stamped
UNKNOWN_VERSION = "0.0.0.0"

StoreProvider = Callable[[], Awaitable[PersistentStore]]


class CacheSynchronizer:
    """Purges stale cached assets once per process after an upgrade."""

    def __init__(
        self,
        settings_store: SettingsStore,
        store_provider: StoreProvider,
        current_version: str,
        user_namespace: str = "assets/user",
    ) -> None:
        """Initialize the synchronizer.

        Args:
            settings_store: Key-value store holding the last seen version.
            store_provider: Coroutine function returning the opened asset store.
            current_version: Version of the running package.
            user_namespace: Path prefix exempt from purging.
        """
        self.settings_store = settings_store
        self.store_provider = store_provider
        self.current_version = current_version
        self.user_namespace = user_namespace
        self.state = SyncState.UNCHECKED
        self.purged_count = 0
        self._lock = asyncio.Lock()

    @property
    def checked(self) -> bool:
        return self.state is SyncState.CHECKED

    async def synchronize(self) -> int:
        """Run the version check and purge if needed.

        Never raises storage errors: failures are logged, the sweep stops
        early and the synchronizer still reaches CHECKED.

        Returns:
            Number of entries removed (0 on every call after the first).
        """
        async with self._lock:
            if self.state is SyncState.CHECKED:
                return 0
            try:
                with log_context(operation="sync"):
                    self.purged_count = await self._check_and_purge()
            finally:
                self.state = SyncState.CHECKED
            return self.purged_count

    async def _check_and_purge(self) -> int:
        try:
            last_version = await self.settings_store.get_string(LAST_VERSION_KEY)
        except StorageError as e:
            logger.error("Cannot read last cache version, skipping purge", error=str(e))
            return 0
        last_version = last_version or UNKNOWN_VERSION

        if last_version == self.current_version:
            logger.debug("Asset cache is current", version=self.current_version)
            return 0

        logger.info(
            "Package version changed, purging cached assets",
            last_version=last_version,
            current_version=self.current_version,
        )
        try:
            await self.settings_store.set_string(LAST_VERSION_KEY, self.current_version)
        except StorageError as e:
            logger.error("Cannot record cache version", error=str(e))

        return await self._purge()

    async def _purge(self) -> int:
        removed = 0
        try:
            store = await self.store_provider()
            async for key in store.list_all():
                if is_user_path(decode_key(key), self.user_namespace):
                    continue
                await store.remove(key)
                removed += 1
        except StorageError as e:
            logger.error("Cache purge aborted", error=str(e), removed=removed)
            return removed

        logger.info("Cache purge complete", removed=removed)
        return removed
