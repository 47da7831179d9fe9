"""Remote hierarchy mirror: local directory structure onto remote folders."""

from typing import Dict, Iterable, Optional, Tuple

from .models import RemoteFolderHandle
from ..api_clients.base import RemoteStoreClient
from ..utils.logging import get_logger


class RemoteHierarchyMirror:
    """Resolves remote folder paths, creating missing levels.

    One instance per run. The folder cache lives on the instance, keyed by
    ``(parent_id, child_name)``; it is never shared between runs, so a run
    always re-resolves structure that may have changed remotely.
    """

    def __init__(self, client: RemoteStoreClient):
        self.client = client
        self.logger = get_logger(self.__class__.__name__)
        self._cache: Dict[Tuple[Optional[str], str], str] = {}
        self.lookups = 0
        self.created = 0

    def ensure_root(self, name: str) -> RemoteFolderHandle:
        """Find or create the top-level folder ``name``.

        Searching before creating converges repeated calls on one folder.
        Concurrent agents can still both miss and both create; that race is
        not closed here.
        """
        folder_id = self._resolve_child(None, name)
        return RemoteFolderHandle(segments=(name,), folder_id=folder_id)

    def ensure_nested_path(self, root: RemoteFolderHandle, segments: Iterable[str]) -> RemoteFolderHandle:
        """Walk ``segments`` below ``root``, one level at a time.

        Blank segments are skipped. Returns ``root`` when nothing is left to walk.
        """
        current = root
        for segment in segments:
            if not segment or not segment.strip():
                continue
            folder_id = self._resolve_child(current.folder_id, segment)
            current = current.child(segment, folder_id)
        return current

    def _resolve_child(self, parent_id: Optional[str], name: str) -> str:
        key = (parent_id, name)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        self.lookups += 1
        folder_id = self.client.find_folder(name, parent_id)
        if folder_id is None:
            folder_id = self.client.create_folder(name, parent_id)
            self.created += 1
            self.logger.info(
                "Created remote folder",
                name=name,
                parent_id=parent_id or "root",
                folder_id=folder_id
            )

        self._cache[key] = folder_id
        return folder_id
