"""Remote store clients."""

from .base import (
    RemoteStoreClient,
    RemoteStoreError,
    RateLimitError,
    AuthenticationError,
    APIConnectionError
)

from .google_drive import GoogleDriveClient

__all__ = [
    # Base classes and exceptions
    "RemoteStoreClient",
    "RemoteStoreError",
    "RateLimitError",
    "AuthenticationError",
    "APIConnectionError",

    # Client implementations
    "GoogleDriveClient",
]
