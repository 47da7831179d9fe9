"""Value types shared by the sync engine components."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Tuple


# Checkpoint value meaning "nothing uploaded yet"
MIN_TIMESTAMP = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class FileCandidate:
    """A local file eligible for upload in the current run."""

    path: Path
    root: Path
    modified_at: datetime
    size: int

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class RemoteFolderHandle:
    """A resolved remote directory."""

    segments: Tuple[str, ...]
    folder_id: str

    @property
    def display_path(self) -> str:
        """Slash-joined path from the remote root, for log lines."""
        return "/" + "/".join(self.segments)

    def child(self, name: str, folder_id: str) -> "RemoteFolderHandle":
        return RemoteFolderHandle(segments=self.segments + (name,), folder_id=folder_id)


@dataclass
class RunStatus:
    """Terminal record of a single backup run."""

    started_utc: datetime
    finished_utc: Optional[datetime] = None
    files_scanned: int = 0
    files_uploaded: int = 0
    skipped_existing: int = 0
    skipped_unstable: int = 0
    errors: int = 0
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the persisted status-file shape, omitting null fields."""
        data = {
            "StartedUtc": self.started_utc.isoformat(),
            "FinishedUtc": self.finished_utc.isoformat() if self.finished_utc else None,
            "FilesScanned": self.files_scanned,
            "FilesUploaded": self.files_uploaded,
            "SkippedExisting": self.skipped_existing,
            "SkippedUnstable": self.skipped_unstable,
            "Errors": self.errors,
            "Notes": self.notes,
        }
        return {key: value for key, value in data.items() if value is not None}

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.finished_utc is None:
            return None
        return (self.finished_utc - self.started_utc).total_seconds()


@dataclass(frozen=True)
class EngineOptions:
    """Per-run knobs for the backup engine."""

    folders: Tuple[str, ...] = ()
    allowed_extensions: frozenset = field(default_factory=frozenset)
    target_folder_name: str = "RocketDriveUploads"
    overwrite_existing: bool = False
    upload_retry_count: int = 3
    checkpoint_path: str = "last_uploaded.txt"
    status_file_path: str = "logs/status.json"
