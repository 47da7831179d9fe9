"""Core sync engine package."""

from .models import EngineOptions, FileCandidate, RemoteFolderHandle, RunStatus, MIN_TIMESTAMP
from .selector import ChangeSelector, normalize_extensions, relative_segments
from .mirror import RemoteHierarchyMirror
from .retry import RetryPolicy, RetryOutcome, RetryStatus, ErrorKind, classify, backoff_delay
from .checkpoint import CheckpointStore
from .recorder import RunRecorder
from .engine import BackupEngine

__all__ = [
    "EngineOptions",
    "FileCandidate",
    "RemoteFolderHandle",
    "RunStatus",
    "MIN_TIMESTAMP",
    "ChangeSelector",
    "normalize_extensions",
    "relative_segments",
    "RemoteHierarchyMirror",
    "RetryPolicy",
    "RetryOutcome",
    "RetryStatus",
    "ErrorKind",
    "classify",
    "backoff_delay",
    "CheckpointStore",
    "RunRecorder",
    "BackupEngine",
]
