"""
Asset access package.

- AssetReader: local reads (cache, then bundled copy) and remote inspection
- AssetUpdater: verified remote updates and direct cache writes
- AssetContext: the per-process owner of shared resources
"""

from blockassets.assets.bundled import BundledReader
from blockassets.assets.context import AssetContext
from blockassets.assets.reader import AssetReader
from blockassets.assets.updater import AssetUpdater, update_with_retries

__all__ = [
    "AssetContext",
    "AssetReader",
    "AssetUpdater",
    "BundledReader",
    "update_with_retries",
]
