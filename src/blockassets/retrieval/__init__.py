"""
Remote retrieval package.

Cache-busted HTTP fetching of asset text from the remote root.
"""

from blockassets.retrieval.fetch import RemoteFetcher, cache_busted

__all__ = ["RemoteFetcher", "cache_busted"]
