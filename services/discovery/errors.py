"""
Error taxonomy for the discovery core.

Location and network failures are reported to the caller as result state.
Storage failures never leave the cache layer; a cache miss is not an error.
"""

from __future__ import annotations


class DiscoveryError(Exception):
    """Base class for every error raised inside the discovery core."""


class LocationError(DiscoveryError):
    """The location provider could not produce a fix."""


class PermissionDenied(LocationError):
    """The user refused (or revoked) location permission."""


class ProviderUnavailable(LocationError):
    """The provider is switched off, timed out, or returned no fix."""


class NetworkError(DiscoveryError):
    """A live source could not be reached or returned a bad response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ClassificationError(DiscoveryError):
    """The relevance classifier failed to produce scores."""


class StorageError(DiscoveryError):
    """A key-value backend read, write or delete failed."""


class SerializationError(StorageError):
    """A value could not be encoded to, or decoded from, stored bytes."""
