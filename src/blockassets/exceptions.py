"""
Custom exception hierarchy for the asset cache.

All exceptions inherit from BlockAssetsError, which provides optional context
for structured error handling and logging. Each class also carries a short
``code`` that is reported in the ``error`` field of an AssetRecord when the
failure is recovered instead of raised.
"""

from __future__ import annotations

from typing import Any


class BlockAssetsError(Exception):
    """Base exception for all asset cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    code = "Error"

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(BlockAssetsError):
    """Raised when configuration is invalid or missing."""

    pass


class PackageError(BlockAssetsError):
    """Raised on programmer misuse, e.g. an asset path that cannot be encoded.

    Not recovered anywhere: this indicates a bug in the caller.
    """

    code = "PackageError"


class StorageError(BlockAssetsError):
    """Base class for persistent store failures."""

    code = "IOError"


class NotFoundError(StorageError):
    """Raised when no cached entry exists for a key.

    Expected during normal operation (cache miss), not an anomaly.
    """

    code = "NotFoundError"


class StorageIOError(StorageError):
    """Raised for any storage fault other than a missing entry.

    Context should include:
        - key: The storage key involved
        - operation: read, write, remove, list or open
    """

    code = "IOError"


class QuotaExceededError(StorageIOError):
    """Raised when a write would exceed the store's quota.

    Context should include:
        - key: The storage key being written
        - quota_bytes: The configured quota
        - required_bytes: Usage the write would have produced
    """

    code = "QuotaExceededError"


class FetchError(BlockAssetsError):
    """Base class for remote fetch failures."""

    code = "Error"


class NetworkError(FetchError):
    """Raised on transport failure or timeout."""

    code = "NetworkError"


class HTTPStatusError(FetchError):
    """Raised when the remote responds with a non-2xx status.

    Attributes:
        status: The HTTP status code.
        reason: The HTTP reason phrase.
    """

    code = "HTTPError"

    def __init__(
        self,
        message: str,
        status: int,
        reason: str = "",
        context: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, context)
        self.status = status
        self.reason = reason


class IntegrityError(BlockAssetsError):
    """Raised when downloaded content does not match its expected hash.

    Context should include:
        - path: The asset path
        - expected: The expected digest
        - actual: The computed digest
    """

    code = "IntegrityError"


class BundledAssetError(BlockAssetsError):
    """Raised when a path is not part of the bundled assets."""

    pass


class ManifestError(BlockAssetsError):
    """Raised when a remote asset manifest cannot be loaded."""

    pass
