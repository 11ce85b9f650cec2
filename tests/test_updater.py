"""
Tests for checksum-verified updates and direct cache writes.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from blockassets.assets.context import AssetContext
from blockassets.assets.updater import update_with_retries
from blockassets.exceptions import IntegrityError, QuotaExceededError
from blockassets.types import GENERIC_ERROR, RemoteManifestEntry
from blockassets.utils.digest import md5_hex
from conftest import FakeRemote

UBLOCK_PATH = "assets/ublock/filters.txt"
USER_PATH = "assets/user/filters.txt"
NEW_CONTENT = "||tracker.example^\n"


class TestUpdate:
    """Test fetching, verifying and committing one asset."""

    @pytest.mark.asyncio
    async def test_verified_update_is_cached(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that content matching its hash is committed and served."""
        remote.files[UBLOCK_PATH] = NEW_CONTENT
        entry = RemoteManifestEntry(UBLOCK_PATH, expected_hash=md5_hex(NEW_CONTENT))

        record = await asset_context.update(entry)

        assert record.ok
        assert record.content == NEW_CONTENT
        assert (await asset_context.get(UBLOCK_PATH)).content == NEW_CONTENT

    @pytest.mark.asyncio
    async def test_hash_comparison_ignores_case(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that an upper-case expected digest still matches."""
        remote.files[UBLOCK_PATH] = NEW_CONTENT
        entry = RemoteManifestEntry(UBLOCK_PATH, expected_hash=md5_hex(NEW_CONTENT).upper())
        assert (await asset_context.update(entry)).ok

    @pytest.mark.asyncio
    async def test_bad_checksum_keeps_cache(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that a checksum mismatch leaves the old cached copy in place."""
        await asset_context.put(UBLOCK_PATH, "old filters\n")
        remote.files[UBLOCK_PATH] = "tampered\n"
        entry = RemoteManifestEntry(UBLOCK_PATH, expected_hash=md5_hex(NEW_CONTENT))

        record = await asset_context.update(entry)

        assert record.error == GENERIC_ERROR
        assert record.content == ""
        assert (await asset_context.get(UBLOCK_PATH)).content == "old filters\n"

    @pytest.mark.asyncio
    async def test_no_expected_hash_skips_verification(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that entries without a hash are committed unverified."""
        remote.files[UBLOCK_PATH] = NEW_CONTENT
        record = await asset_context.update(RemoteManifestEntry(UBLOCK_PATH))
        assert record.ok

    @pytest.mark.asyncio
    async def test_user_path_bad_checksum_keeps_cache(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that user assets are verified when the caller supplies a hash."""
        await asset_context.put(USER_PATH, "v1\n")
        remote.files[USER_PATH] = "v2-corrupted"
        entry = RemoteManifestEntry(USER_PATH, expected_hash=md5_hex("v2"))

        record = await asset_context.update(entry)

        assert record.error == GENERIC_ERROR
        assert record.content == ""
        assert (await asset_context.get(USER_PATH)).content == "v1\n"

    @pytest.mark.asyncio
    async def test_user_path_without_hash_is_committed(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that a user asset with no expected hash is committed unverified."""
        remote.files[USER_PATH] = "user rules\n"
        assert (await asset_context.update(RemoteManifestEntry(USER_PATH))).ok
        assert (await asset_context.get(USER_PATH)).content == "user rules\n"

    @pytest.mark.asyncio
    async def test_fetch_failure_keeps_cache(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that a network failure leaves the cache untouched."""
        remote.failing.add(UBLOCK_PATH)

        record = await asset_context.update(RemoteManifestEntry(UBLOCK_PATH))

        assert record.error == GENERIC_ERROR
        assert (await asset_context.get(UBLOCK_PATH)).content == "bundled filters\n"

    @pytest.mark.asyncio
    async def test_storage_failure_returns_content(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that a failed commit still returns the verified content."""
        remote.files[UBLOCK_PATH] = NEW_CONTENT
        store = await asset_context.store()

        with patch.object(
            store, "write_atomic", AsyncMock(side_effect=QuotaExceededError("full"))
        ):
            record = await asset_context.update(
                RemoteManifestEntry(UBLOCK_PATH, expected_hash=md5_hex(NEW_CONTENT))
            )

        assert record.content == NEW_CONTENT
        assert record.error == "QuotaExceededError"
        assert (await asset_context.get(UBLOCK_PATH)).content == "bundled filters\n"

    @pytest.mark.asyncio
    async def test_verify_raises_integrity_error(self, asset_context: AssetContext) -> None:
        """Test that verify() raises on mismatch with both digests in context."""
        entry = RemoteManifestEntry(UBLOCK_PATH, expected_hash="abc")
        with pytest.raises(IntegrityError) as exc_info:
            asset_context.updater.verify(entry, NEW_CONTENT)
        assert exc_info.value.context["actual"] == md5_hex(NEW_CONTENT)


class TestPut:
    """Test direct cache writes."""

    @pytest.mark.asyncio
    async def test_put_then_get(self, asset_context: AssetContext) -> None:
        """Test that imported content is served by get()."""
        record = await asset_context.put(USER_PATH, "my rules\n")
        assert record.ok
        assert (await asset_context.get(USER_PATH)).content == "my rules\n"

    @pytest.mark.asyncio
    async def test_put_over_quota(self, asset_context: AssetContext) -> None:
        """Test that exceeding the quota reports the error code with the content."""
        content = "x" * (2 * 1024 * 1024)
        record = await asset_context.put(UBLOCK_PATH, content)
        assert record.error == "QuotaExceededError"
        assert record.content == content


class TestUpdateWithRetries:
    """Test the caller-side retry policy."""

    @pytest.mark.asyncio
    async def test_retries_until_success(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that a transient fetch failure is retried."""
        remote.failing.add(UBLOCK_PATH)
        remote.files[UBLOCK_PATH] = NEW_CONTENT
        original = asset_context.updater.update
        calls = 0

        async def flaky_update(entry: RemoteManifestEntry):
            nonlocal calls
            calls += 1
            if calls == 2:
                remote.failing.discard(UBLOCK_PATH)
            return await original(entry)

        with patch.object(asset_context.updater, "update", flaky_update):
            record = await update_with_retries(
                asset_context.updater, RemoteManifestEntry(UBLOCK_PATH), attempts=3, wait_min=0
            )

        assert record.ok
        assert calls == 2

    @pytest.mark.asyncio
    async def test_returns_last_failure(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that the last failed record is returned once attempts run out."""
        remote.failing.add(UBLOCK_PATH)

        record = await update_with_retries(
            asset_context.updater, RemoteManifestEntry(UBLOCK_PATH), attempts=3, wait_min=0
        )

        assert record.error == GENERIC_ERROR
        assert len(remote.requests) == 3

    @pytest.mark.asyncio
    async def test_storage_failure_not_retried(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that a storage failure with content is returned immediately."""
        remote.files[UBLOCK_PATH] = "x" * (2 * 1024 * 1024)

        record = await update_with_retries(
            asset_context.updater, RemoteManifestEntry(UBLOCK_PATH), attempts=3, wait_min=0
        )

        assert record.error == "QuotaExceededError"
        assert len(remote.requests) == 1

    @pytest.mark.asyncio
    async def test_empty_body_storage_failure_not_retried(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that a storage failure is not retried when the fetched body is empty."""
        remote.files[UBLOCK_PATH] = ""
        store = await asset_context.store()

        with patch.object(
            store, "write_atomic", AsyncMock(side_effect=QuotaExceededError("full"))
        ):
            record = await update_with_retries(
                asset_context.updater, RemoteManifestEntry(UBLOCK_PATH), attempts=3, wait_min=0
            )

        assert record.content == ""
        assert record.error == "QuotaExceededError"
        assert len(remote.requests) == 1


class TestUpdateMany:
    """Test update cycles over a manifest."""

    @pytest.mark.asyncio
    async def test_cycle_summary(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test counts for a mixed cycle with user, good and failing entries."""
        remote.files[UBLOCK_PATH] = NEW_CONTENT
        entries = [
            RemoteManifestEntry(USER_PATH),
            RemoteManifestEntry(UBLOCK_PATH, expected_hash=md5_hex(NEW_CONTENT)),
            RemoteManifestEntry("assets/thirdparties/missing.txt"),
        ]

        summary = await asset_context.update_many(entries)

        assert summary.cycle_id.startswith("cycle_")
        assert summary.skipped == (USER_PATH,)
        assert summary.updated_count == 1
        assert summary.failed_count == 1
        assert [r.path for r in summary.records] == [
            UBLOCK_PATH,
            "assets/thirdparties/missing.txt",
        ]

    @pytest.mark.asyncio
    async def test_user_entries_never_fetched(
        self, asset_context: AssetContext, remote: FakeRemote
    ) -> None:
        """Test that user assets are not requested during a cycle."""
        await asset_context.update_many([RemoteManifestEntry(USER_PATH)])
        assert remote.requests == []

    @pytest.mark.asyncio
    async def test_empty_manifest(self, asset_context: AssetContext) -> None:
        """Test that an empty cycle succeeds with zero counts."""
        summary = await asset_context.update_many([])
        assert summary.records == ()
        assert summary.updated_count == summary.failed_count == summary.skipped_count == 0
