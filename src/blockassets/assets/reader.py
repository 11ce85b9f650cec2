"""
Layered asset reads.

Read:
    If in cache: use cache
    If not in cache: use the bundled copy

Plain reads are local only. Remote content is only served by get_remote(),
which is meant for explicit inspection (e.g. diffing before an update), and
content only enters the cache through the updater.
"""

from __future__ import annotations

from typing import Awaitable, Callable

from blockassets.assets.bundled import BundledReader
from blockassets.cache.base import PersistentStore
from blockassets.cache.keys import encode_key
from blockassets.exceptions import (
    BundledAssetError,
    FetchError,
    HTTPStatusError,
    NotFoundError,
    StorageError,
)
from blockassets.logging import get_logger, log_context
from blockassets.retrieval.fetch import RemoteFetcher
from blockassets.types import GENERIC_ERROR, AssetPath, AssetRecord

logger = get_logger(__name__)

StoreProvider = Callable[[], Awaitable[PersistentStore]]


class AssetReader:
    """Serves asset text from the cache, the bundle or, on request, the remote root."""

    def __init__(
        self,
        store_provider: StoreProvider,
        bundled: BundledReader,
        fetcher: RemoteFetcher,
    ) -> None:
        """Initialize the reader.

        Args:
            store_provider: Coroutine function returning the opened asset store.
            bundled: Reader for the package's bundled assets.
            fetcher: Remote fetcher, used by get_remote() only.
        """
        self.store_provider = store_provider
        self.bundled = bundled
        self.fetcher = fetcher

    async def get(self, path: AssetPath) -> AssetRecord:
        """Read an asset from the cache, falling back to the bundled copy.

        Never performs network I/O and never raises for storage faults.

        Args:
            path: Asset path.

        Returns:
            AssetRecord with the text, or empty content and error "Error"
            when neither the cache nor the bundle has the asset.
        """
        key = encode_key(path)
        with log_context(asset=path, operation="get"):
            try:
                store = await self.store_provider()
                content = await store.read(key)
                return AssetRecord(path=path, content=content)
            except NotFoundError:
                pass
            except StorageError as e:
                logger.error("Cache read failed, using bundled copy", error=str(e))

            return await self._read_bundled(path)

    async def _read_bundled(self, path: AssetPath) -> AssetRecord:
        try:
            content = await self.bundled.read(path)
        except BundledAssetError as e:
            logger.error("Bundled asset unavailable", error=str(e))
            return AssetRecord.failed(path)
        return AssetRecord(path=path, content=content)

    async def get_remote(self, path: AssetPath) -> AssetRecord:
        """Fetch an asset directly from the remote root, bypassing cache and bundle.

        Args:
            path: Asset path.

        Returns:
            AssetRecord with the remote text, or empty content and an error
            marker ("Error <reason>" for HTTP failures).
        """
        url = self.fetcher.url_for(path)
        with log_context(asset=path, operation="get_remote"):
            try:
                content = await self.fetcher.fetch(url)
            except HTTPStatusError as e:
                logger.error("Remote asset unavailable", url=url, status=e.status)
                return AssetRecord.failed(path, f"{GENERIC_ERROR} {e.reason}".rstrip())
            except FetchError as e:
                logger.error("Remote fetch failed", url=url, error=str(e))
                return AssetRecord.failed(path)
        return AssetRecord(path=path, content=content)
