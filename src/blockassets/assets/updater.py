"""
Checksum-verified asset updates.

Update:
    Use remote
    Verify content hash
    Save in cache

Import:
    Save user content in cache

A failed fetch or checksum mismatch leaves the cache untouched, so the
previously cached copy (or the bundled one) keeps serving reads.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Iterable

from tenacity import AsyncRetrying, retry_if_result, stop_after_attempt, wait_exponential

from blockassets.cache.base import PersistentStore
from blockassets.cache.keys import encode_key, is_user_path
from blockassets.exceptions import FetchError, IntegrityError, StorageError
from blockassets.logging import get_logger, log_context
from blockassets.retrieval.fetch import RemoteFetcher
from blockassets.types import (
    GENERIC_ERROR,
    AssetPath,
    AssetRecord,
    RemoteManifestEntry,
    UpdateSummary,
    generate_id,
)
from blockassets.utils.digest import Hasher, md5_hex

logger = get_logger(__name__)

StoreProvider = Callable[[], Awaitable[PersistentStore]]


class AssetUpdater:
    """Commits remote or user-supplied content to the persistent store."""

    def __init__(
        self,
        store_provider: StoreProvider,
        fetcher: RemoteFetcher,
        hasher: Hasher = md5_hex,
        user_namespace: str = "assets/user",
    ) -> None:
        """Initialize the updater.

        Args:
            store_provider: Coroutine function returning the opened asset store.
            fetcher: Remote fetcher for the configured remote root.
            hasher: Digest function matching the manifest's expected hashes.
            user_namespace: Path prefix of user-authored assets.
        """
        self.store_provider = store_provider
        self.fetcher = fetcher
        self.hasher = hasher
        self.user_namespace = user_namespace

    async def put(self, path: AssetPath, content: str) -> AssetRecord:
        """Write content straight into the cache.

        Returns:
            AssetRecord with the content; ``error`` holds the storage error
            code if the write failed.
        """
        key = encode_key(path)
        with log_context(asset=path, operation="put"):
            try:
                store = await self.store_provider()
                await store.write_atomic(key, content)
            except StorageError as e:
                logger.error("Cache write failed", error=str(e))
                return AssetRecord.failed(path, e.code, content=content)
        return AssetRecord(path=path, content=content)

    def verify(self, entry: RemoteManifestEntry, content: str) -> None:
        """Check fetched content against the entry's expected hash.

        Entries without an expected hash are not verified.

        Raises:
            IntegrityError: On a checksum mismatch.
        """
        if not entry.expected_hash:
            return
        actual = self.hasher(content)
        if actual.lower() != entry.expected_hash.lower():
            raise IntegrityError(
                "Bad checksum",
                context={"path": entry.path, "expected": entry.expected_hash, "actual": actual},
            )

    async def update(self, entry: RemoteManifestEntry) -> AssetRecord:
        """Fetch, verify and commit one asset.

        Args:
            entry: The asset to refresh and its expected hash.

        Returns:
            On fetch or checksum failure: empty content and error "Error", the
            cache untouched. On storage failure: the fetched content and the
            storage error code. Otherwise the committed content.
        """
        path = entry.path
        url = self.fetcher.url_for(path)
        with log_context(asset=path, operation="update"):
            try:
                content = await self.fetcher.fetch(url)
            except FetchError as e:
                logger.error("Remote fetch failed", url=url, error=str(e))
                return AssetRecord.failed(path)

            try:
                self.verify(entry, content)
            except IntegrityError as e:
                logger.error("Rejected remote asset", url=url, error=str(e))
                return AssetRecord.failed(path)

        record = await self.put(path, content)
        if record.ok:
            logger.info("Updated asset", path=path, size=len(content))
        return record

    async def update_many(
        self,
        entries: Iterable[RemoteManifestEntry],
        concurrency: int = 4,
        attempts: int = 1,
    ) -> UpdateSummary:
        """Run one update cycle over a manifest.

        User-namespace entries have no remote source and are skipped.

        Args:
            entries: Manifest entries to refresh.
            concurrency: Maximum number of updates in flight.
            attempts: Attempts per asset (see update_with_retries).

        Returns:
            UpdateSummary with one record per eligible entry.
        """
        cycle_id = generate_id("cycle")
        semaphore = asyncio.Semaphore(concurrency)
        eligible: list[RemoteManifestEntry] = []
        skipped: list[AssetPath] = []
        for entry in entries:
            if is_user_path(entry.path, self.user_namespace):
                skipped.append(entry.path)
            else:
                eligible.append(entry)

        async def update_with_semaphore(entry: RemoteManifestEntry) -> AssetRecord:
            async with semaphore:
                if attempts > 1:
                    return await update_with_retries(self, entry, attempts=attempts)
                return await self.update(entry)

        with log_context(cycle_id=cycle_id, operation="update_cycle"):
            records = await asyncio.gather(
                *[update_with_semaphore(entry) for entry in eligible]
            )
            summary = UpdateSummary(
                cycle_id=cycle_id, records=tuple(records), skipped=tuple(skipped)
            )
            logger.info(
                "Update cycle complete",
                updated=summary.updated_count,
                failed=summary.failed_count,
                skipped=summary.skipped_count,
            )
        return summary


def _should_retry(record: AssetRecord) -> bool:
    # Fetch and checksum failures report the generic error; storage failures carry a code
    return record.error == GENERIC_ERROR


async def update_with_retries(
    updater: AssetUpdater,
    entry: RemoteManifestEntry,
    attempts: int = 3,
    wait_min: float = 1.0,
    wait_max: float = 30.0,
) -> AssetRecord:
    """Update an asset, retrying fetch and checksum failures with backoff.

    The fetcher never retries on its own; this is the caller-side policy
    used by the CLI and update cycles. Storage failures are not retried.

    Returns:
        The first successful record, or the last failed one.
    """
    retrying = AsyncRetrying(
        retry=retry_if_result(_should_retry),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(multiplier=wait_min, min=wait_min, max=wait_max),
        retry_error_callback=lambda state: state.outcome.result(),
    )
    return await retrying(updater.update, entry)
