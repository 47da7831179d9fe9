"""Remote store client interface and error types."""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, Union

from ..utils.logging import get_logger


class RemoteStoreClient(ABC):
    """Abstract base class for remote object stores the agent uploads into.

    Identifiers are opaque strings. ``None`` as a parent id means the store root.
    """

    def __init__(self, **kwargs):
        self.logger = get_logger(self.__class__.__name__)

    @abstractmethod
    def find_folder(self, name: str, parent_id: Optional[str] = None) -> Optional[str]:
        """Return the id of the child folder ``name`` under ``parent_id``, if any."""
        pass

    @abstractmethod
    def create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        """Create a child folder and return its id."""
        pass

    @abstractmethod
    def find_file_in_folder(self, name: str, parent_id: str) -> Optional[str]:
        """Return the id of a file named ``name`` directly inside ``parent_id``."""
        pass

    @abstractmethod
    def upload_file_to_folder(self, local_path: Union[str, Path], parent_id: str) -> str:
        """Upload a local file into ``parent_id`` and return the new file id."""
        pass

    @abstractmethod
    def delete_file(self, file_id: str) -> None:
        """Delete a remote file."""
        pass

    def ensure_root_folder(self, name: str) -> str:
        """Find or create a top-level folder.

        Searches before creating. The store has no atomic check-then-create,
        so two processes racing here can still end up with two folders.
        """
        existing = self.find_folder(name)
        if existing:
            return existing

        folder_id = self.create_folder(name)
        self.logger.info("Created root folder", name=name, folder_id=folder_id)
        return folder_id

    def ensure_nested_folders(self, parent_id: str, names: Iterable[str]) -> str:
        """Find or create each folder of ``names`` in turn below ``parent_id``.

        Returns:
            Id of the deepest folder, or ``parent_id`` when ``names`` is empty
        """
        current = parent_id
        for name in names:
            if not name or not name.strip():
                continue

            existing = self.find_folder(name, current)
            if existing:
                current = existing
            else:
                current = self.create_folder(name, current)
                self.logger.debug("Created folder", name=name, folder_id=current)

        return current


class RemoteStoreError(Exception):
    """Raised when a remote store call fails.

    Carries the HTTP status code and the first error reason reported by the
    API, when known, so callers can classify the failure.
    """

    def __init__(self, message: str, status_code: Optional[int] = None, reason: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.reason = reason


class RateLimitError(RemoteStoreError):
    """Raised when API rate limit is exceeded."""

    def __init__(
        self,
        message: str,
        retry_after: Optional[int] = None,
        status_code: Optional[int] = 429,
        reason: Optional[str] = None
    ):
        super().__init__(message, status_code=status_code, reason=reason)
        self.retry_after = retry_after


class AuthenticationError(RemoteStoreError):
    """Raised when API authentication or authorization fails."""
    pass


class APIConnectionError(RemoteStoreError):
    """Raised when API connection fails."""
    pass
