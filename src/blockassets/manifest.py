"""
Remote asset manifest.

A manifest lists the assets eligible for remote update. On disk it is a JSON
object keyed by asset path:

    {
        "assets/ublock/filters.txt": {"title": "µBlock filters", "md5": "..."},
        "assets/user/filters.txt": {}
    }
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import orjson

from blockassets.exceptions import ManifestError
from blockassets.logging import get_logger
from blockassets.types import RemoteManifestEntry

logger = get_logger(__name__)

USER_FILTERS_PATH = "assets/user/filters.txt"

DEFAULT_MANIFEST: tuple[RemoteManifestEntry, ...] = (
    RemoteManifestEntry(path=USER_FILTERS_PATH),
    RemoteManifestEntry(path="assets/ublock/filters.txt", title="µBlock filters"),
)


def parse_manifest(data: Any) -> list[RemoteManifestEntry]:
    """Build manifest entries from decoded JSON.

    Raises:
        ManifestError: If the structure is not a mapping of path to details.
    """
    if not isinstance(data, dict):
        raise ManifestError("Manifest must be a JSON object keyed by asset path")

    entries: list[RemoteManifestEntry] = []
    for path, details in data.items():
        details = details or {}
        if not isinstance(details, dict):
            raise ManifestError("Manifest entry must be an object", context={"path": path})
        expected_hash = details.get("md5") or details.get("hash")
        title = details.get("title")
        if expected_hash is not None and not isinstance(expected_hash, str):
            raise ManifestError("Manifest hash must be a string", context={"path": path})
        entries.append(
            RemoteManifestEntry(path=path, expected_hash=expected_hash, title=title)
        )
    return entries


def load_manifest(path: Path) -> list[RemoteManifestEntry]:
    """Load a manifest file.

    Raises:
        ManifestError: If the file cannot be read or parsed.
    """
    try:
        data = orjson.loads(path.read_bytes())
    except OSError as e:
        raise ManifestError("Cannot read manifest", context={"path": str(path), "error": str(e)}) from e
    except orjson.JSONDecodeError as e:
        raise ManifestError("Invalid manifest JSON", context={"path": str(path), "error": str(e)}) from e

    entries = parse_manifest(data)
    logger.debug("Loaded manifest", path=str(path), entries=len(entries))
    return entries


def dump_manifest(entries: list[RemoteManifestEntry]) -> bytes:
    """Serialize entries to the manifest file format."""
    data: dict[str, dict[str, str]] = {}
    for entry in entries:
        details: dict[str, str] = {}
        if entry.title:
            details["title"] = entry.title
        if entry.expected_hash:
            details["md5"] = entry.expected_hash
        data[entry.path] = details
    return orjson.dumps(data, option=orjson.OPT_INDENT_2)
