"""
Reader for the read-only assets bundled with the installed package.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from blockassets.exceptions import BundledAssetError
from blockassets.types import AssetPath


class BundledReader:
    """Reads bundled assets from a directory tree rooted at ``root``.

    Asset paths are resolved relative to the root; paths escaping it are
    treated as not part of the bundle.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _resolve(self, path: AssetPath) -> Path:
        root = self.root.resolve()
        target = (root / path).resolve()
        if not path or target == root or not target.is_relative_to(root):
            raise BundledAssetError("Not a bundled asset", context={"path": path})
        return target

    async def read(self, path: AssetPath) -> str:
        """Read a bundled asset as text.

        Raises:
            BundledAssetError: If the path is not part of the bundle.
        """
        return await asyncio.to_thread(self._read_sync, path)

    def _read_sync(self, path: AssetPath) -> str:
        try:
            target = self._resolve(path)
            return target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError, ValueError) as e:
            raise BundledAssetError(
                "Cannot read bundled asset", context={"path": path, "error": str(e)}
            ) from e
