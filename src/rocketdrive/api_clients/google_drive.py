"""Google Drive API client implementation."""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from googleapiclient.errors import HttpError
from googleapiclient.http import MediaFileUpload
import google.auth.exceptions

from .base import RemoteStoreClient, RemoteStoreError, RateLimitError, AuthenticationError

FOLDER_MIME_TYPE = "application/vnd.google-apps.folder"
UPLOAD_MIME_TYPE = "application/octet-stream"

RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


class GoogleDriveClient(RemoteStoreClient):
    """Google Drive v3 binding of the remote store interface."""

    def __init__(self, service: Any, chunk_size: int = 10 * 1024 * 1024, **kwargs):
        """Initialize Google Drive client.

        Args:
            service: An authenticated Drive v3 resource (``googleapiclient.discovery.build``)
            chunk_size: Resumable upload chunk size in bytes
            **kwargs: Additional configuration parameters
        """
        super().__init__(**kwargs)
        self.service = service
        self.chunk_size = chunk_size

        self.logger.info("Google Drive client initialized", chunk_size=chunk_size)

    def find_folder(self, name: str, parent_id: Optional[str] = None) -> Optional[str]:
        query = self._build_query(name, parent_id or "root", folders_only=True)
        files = self._list(query)

        if len(files) > 1:
            self.logger.warning(
                "Multiple folders share this name, using the first",
                name=name,
                parent_id=parent_id or "root",
                count=len(files)
            )

        return files[0]["id"] if files else None

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        metadata = {
            "name": name,
            "mimeType": FOLDER_MIME_TYPE,
            "parents": [parent_id or "root"],
        }
        request = self.service.files().create(body=metadata, fields="id")
        created = self._execute(request, operation="create_folder")
        return created["id"]

    def find_file_in_folder(self, name: str, parent_id: str) -> Optional[str]:
        query = self._build_query(name, parent_id, folders_only=False)
        files = self._list(query)
        return files[0]["id"] if files else None

    def upload_file_to_folder(self, local_path: Union[str, Path], parent_id: str) -> str:
        path = Path(local_path)
        metadata = {"name": path.name, "parents": [parent_id]}
        media = MediaFileUpload(
            str(path),
            mimetype=UPLOAD_MIME_TYPE,
            chunksize=self.chunk_size,
            resumable=True
        )
        request = self.service.files().create(body=metadata, media_body=media, fields="id")
        uploaded = self._execute(request, operation="upload")

        file_id = uploaded.get("id") if uploaded else None
        if not file_id:
            raise RemoteStoreError(f"Upload of {path} returned no file id")

        self.logger.debug("File uploaded", path=str(path), file_id=file_id, parent_id=parent_id)
        return file_id

    def delete_file(self, file_id: str) -> None:
        request = self.service.files().delete(fileId=file_id)
        self._execute(request, operation="delete")

    def _build_query(self, name: str, parent_id: str, folders_only: bool) -> str:
        """Build Google Drive API query string."""
        query_parts = []

        operator = "=" if folders_only else "!="
        query_parts.append(f"mimeType {operator} '{FOLDER_MIME_TYPE}'")

        query_parts.append(f"name = '{escape_query_value(name)}'")
        query_parts.append(f"'{escape_query_value(parent_id)}' in parents")
        query_parts.append("trashed = false")

        return " and ".join(query_parts)

    def _list(self, query: str) -> List[Dict[str, Any]]:
        request = self.service.files().list(q=query, fields="files(id, name)", spaces="drive")
        result = self._execute(request, operation="list")
        return result.get("files", []) if result else []

    def _execute(self, request, operation: str):
        """Execute a Drive request, translating client errors into store errors."""
        try:
            return request.execute()
        except HttpError as e:
            raise translate_http_error(e, operation) from e
        except google.auth.exceptions.RefreshError as e:
            raise AuthenticationError(f"Google Drive credentials rejected during {operation}: {e}") from e


def escape_query_value(value: str) -> str:
    """Escape a literal for use inside single quotes in a Drive query."""
    return value.replace("\\", "\\\\").replace("'", "\\'")


def http_error_reason(error: HttpError) -> Optional[str]:
    """First ``reason`` reported in a Drive error payload, if any."""
    details = getattr(error, "error_details", None)
    if isinstance(details, list):
        for detail in details:
            if isinstance(detail, dict) and detail.get("reason"):
                return detail["reason"]

    content = getattr(error, "content", None)
    if not content:
        return None

    try:
        payload = json.loads(content.decode("utf-8") if isinstance(content, bytes) else content)
    except (ValueError, UnicodeDecodeError):
        return None

    errors = payload.get("error", {}).get("errors", []) if isinstance(payload, dict) else []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("reason")
    return None


def translate_http_error(error: HttpError, operation: str) -> RemoteStoreError:
    """Map a googleapiclient ``HttpError`` onto the store error hierarchy."""
    status = getattr(error.resp, "status", None)
    try:
        status = int(status) if status is not None else None
    except (TypeError, ValueError):
        status = None

    reason = http_error_reason(error)
    message = f"Google Drive {operation} failed: {error}"

    if status == 429 or reason in RATE_LIMIT_REASONS:
        try:
            retry_after = int(error.resp.get("retry-after"))
        except (AttributeError, TypeError, ValueError):
            retry_after = None
        return RateLimitError(message, retry_after=retry_after, status_code=status, reason=reason)

    if status in (401, 403):
        return AuthenticationError(message, status_code=status, reason=reason)

    return RemoteStoreError(message, status_code=status, reason=reason)
