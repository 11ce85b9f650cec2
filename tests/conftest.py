"""
Pytest configuration and fixtures for asset cache tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import AsyncGenerator, Generator
from unittest.mock import patch

import httpx
import pytest

from blockassets.assets.bundled import BundledReader
from blockassets.assets.context import AssetContext
from blockassets.cache.file_store import FileSystemStore
from blockassets.cache.kv_store import InMemorySettingsStore
from blockassets.config import Settings, clear_settings_cache
from blockassets.retrieval.fetch import RemoteFetcher

REMOTE_ROOT = "https://assets.example.test/ublock/"


class FakeRemote:
    """In-memory remote root served through httpx.MockTransport.

    ``files`` maps asset path to body text; ``statuses`` forces a status
    code for a path; ``failing`` paths raise a transport error.
    """

    def __init__(self) -> None:
        self.files: dict[str, str] = {}
        self.statuses: dict[str, int] = {}
        self.failing: set[str] = set()
        self.requests: list[httpx.Request] = []

    def _handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/ublock/")
        if path in self.failing:
            raise httpx.ConnectError("connection refused", request=request)
        if path in self.statuses:
            return httpx.Response(self.statuses[path], text="")
        if path in self.files:
            return httpx.Response(200, text=self.files[path])
        return httpx.Response(404, text="not found")

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handler)

    def fetcher(self) -> RemoteFetcher:
        return RemoteFetcher(REMOTE_ROOT, timeout=5.0, transport=self.transport())


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "BLOCKASSETS_REMOTE_ROOT": REMOTE_ROOT,
        "BLOCKASSETS_CACHE_DIR": str(temp_dir / "cache"),
        "BLOCKASSETS_QUOTA_BYTES": "1048576",
        "BLOCKASSETS_FETCH_TIMEOUT": "5",
        "BLOCKASSETS_UPDATE_CONCURRENCY": "2",
        "BLOCKASSETS_PACKAGE_VERSION": "1.2.3",
        "BLOCKASSETS_LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration."""
    clear_settings_cache()
    from blockassets.config import get_settings

    settings = get_settings()
    settings.ensure_directories()
    yield settings
    clear_settings_cache()


@pytest.fixture
def bundled_dir(temp_dir: Path) -> Path:
    """A bundled asset tree with one filter list and an empty user list."""
    root = temp_dir / "bundled"
    (root / "assets" / "ublock").mkdir(parents=True)
    (root / "assets" / "user").mkdir(parents=True)
    (root / "assets" / "ublock" / "filters.txt").write_text("bundled filters\n", encoding="utf-8")
    (root / "assets" / "user" / "filters.txt").write_text("", encoding="utf-8")
    return root


@pytest.fixture
async def file_store(temp_dir: Path) -> FileSystemStore:
    """An opened filesystem store."""
    store = FileSystemStore(temp_dir / "store", quota_bytes=1024 * 1024)
    return await store.open()


@pytest.fixture
def remote() -> FakeRemote:
    """A fake remote root."""
    return FakeRemote()


@pytest.fixture
async def asset_context(
    temp_dir: Path, bundled_dir: Path, remote: FakeRemote
) -> AsyncGenerator[AssetContext, None]:
    """An AssetContext wired to a temp store, the test bundle and the fake remote."""
    context = AssetContext(
        store=FileSystemStore(temp_dir / "store", quota_bytes=1024 * 1024),
        settings_store=InMemorySettingsStore(),
        bundled=BundledReader(bundled_dir),
        fetcher=remote.fetcher(),
        current_version="1.0.0",
    )
    yield context
    await context.close()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
