"""Shared fixtures: an in-memory remote store and file helpers."""

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from rocketdrive.api_clients.base import RemoteStoreClient


class FakeRemoteStore(RemoteStoreClient):
    """Folder/file tree kept in dictionaries; records every call."""

    def __init__(self):
        super().__init__()
        self.folders: Dict[str, Tuple[Optional[str], str]] = {}
        self.files: Dict[str, Tuple[str, str]] = {}
        self.calls: List[Tuple[str, ...]] = []
        self.upload_failures: Dict[str, List[Exception]] = {}
        self._next_id = 0

    def _new_id(self, prefix: str) -> str:
        self._next_id += 1
        return f"{prefix}{self._next_id}"

    def find_folder(self, name, parent_id=None):
        self.calls.append(("find_folder", name, parent_id))
        for folder_id, (parent, folder_name) in self.folders.items():
            if parent == parent_id and folder_name == name:
                return folder_id
        return None

    def create_folder(self, name, parent_id=None):
        self.calls.append(("create_folder", name, parent_id))
        folder_id = self._new_id("folder")
        self.folders[folder_id] = (parent_id, name)
        return folder_id

    def find_file_in_folder(self, name, parent_id):
        self.calls.append(("find_file", name, parent_id))
        for file_id, (parent, file_name) in self.files.items():
            if parent == parent_id and file_name == name:
                return file_id
        return None

    def upload_file_to_folder(self, local_path, parent_id):
        name = Path(local_path).name
        self.calls.append(("upload", name, parent_id))
        pending = self.upload_failures.get(name)
        if pending:
            raise pending.pop(0)
        file_id = self._new_id("file")
        self.files[file_id] = (parent_id, name)
        return file_id

    def delete_file(self, file_id):
        self.calls.append(("delete", file_id))
        self.files.pop(file_id, None)

    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)

    def folder_path(self, folder_id: str) -> str:
        parts = []
        current = folder_id
        while current is not None:
            parent, name = self.folders[current]
            parts.append(name)
            current = parent
        return "/".join(reversed(parts))

    def file_paths(self) -> List[str]:
        return sorted(f"{self.folder_path(parent)}/{name}" for parent, name in self.files.values())


def write_file(path: Path, content: str = "data", modified: Optional[datetime] = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    if modified is not None:
        ts = modified.timestamp()
        os.utime(path, (ts, ts))
    return path


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def remote_store():
    return FakeRemoteStore()
