# SPDX-License-Identifier: Apache-2.0

"""Custom exceptions for inventory synchronization."""

from typing import Optional


class InventorySyncError(Exception):
    """Base exception for inventory synchronization errors."""

    pass


class ConfigError(InventorySyncError, ValueError):
    """Raised when the configuration is missing or invalid."""

    pass


class SourceError(InventorySyncError):
    """Base exception for errors talking to the NetBox API."""

    retryable = False


class AuthError(SourceError):
    """Raised when NetBox rejects the API token (HTTP 401/403)."""

    pass


class NetworkError(SourceError):
    """Raised on timeouts, connection failures and server errors."""

    retryable = True


class RateLimitError(SourceError):
    """Raised when NetBox answers with HTTP 429.

    Attributes:
        retry_after: Delay in seconds suggested by the server, if any
    """

    retryable = True

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class SourceAPIError(SourceError):
    """Raised when NetBox returns a non-retryable error or unusable content."""

    pass


class SchemaError(InventorySyncError):
    """Raised when a raw record cannot be normalized.

    Attributes:
        index: Position of the record in the fetched batch
        name: Record name, if it had one
        reason: Why the record was rejected
    """

    def __init__(self, reason: str, index: Optional[int] = None, name=None):
        self.reason = reason
        self.index = index
        self.name = name
        location = f"record {index}" if index is not None else "batch"
        if name:
            location = f"{location} ({name})"
        super().__init__(f"{location}: {reason}")


class NotReadyError(InventorySyncError):
    """Raised when no inventory snapshot has been published yet."""

    pass


class RefreshCancelledError(InventorySyncError):
    """Raised when a refresh cycle is cancelled before publication."""

    pass


class SnapshotConsistencyError(InventorySyncError):
    """Raised when a candidate snapshot references unknown hosts."""

    pass
