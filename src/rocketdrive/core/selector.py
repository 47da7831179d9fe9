"""Change selection: which local files need uploading this run."""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from .models import FileCandidate
from ..utils.logging import get_logger


def normalize_extensions(
    values: Optional[Union[str, Iterable[str]]] = None,
    csv: Optional[str] = None
) -> frozenset:
    """Normalize an extension allow-list to lower-case, dot-prefixed entries.

    Both a list and a comma-separated string are accepted (and may be combined),
    so ``["zip", ".PDF"]`` and ``"zip, .pdf"`` both yield ``{".zip", ".pdf"}``.
    Blank entries are dropped.
    """
    raw: List[str] = []

    if isinstance(values, str):
        raw.extend(values.split(","))
    elif values:
        for value in values:
            raw.extend(str(value).split(","))

    if csv:
        raw.extend(csv.split(","))

    normalized = set()
    for entry in raw:
        ext = entry.strip()
        if not ext:
            continue
        if not ext.startswith("."):
            ext = "." + ext
        normalized.add(ext.lower())

    return frozenset(normalized)


def is_allowed(path: Path, allowed_extensions: frozenset) -> bool:
    """Empty allow-list means every file is allowed."""
    if not allowed_extensions:
        return True
    return path.suffix.lower() in allowed_extensions


def relative_segments(root: Union[str, Path], directory: Union[str, Path]) -> Tuple[str, ...]:
    """Path segments leading from ``root`` down to ``directory``.

    Returns an empty tuple when ``directory`` is the root itself. A directory
    outside the root (another drive, a symlink escaping the tree) maps to its
    leaf name so the file still lands somewhere predictable.
    """
    root_path = Path(os.path.abspath(root))
    dir_path = Path(os.path.abspath(directory))

    try:
        relative = dir_path.relative_to(root_path)
    except ValueError:
        return (dir_path.name,) if dir_path.name else ()

    return tuple(part for part in relative.parts if part.strip() and part != ".")


def modified_utc(stat_result: os.stat_result) -> datetime:
    return datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc)


class ChangeSelector:
    """Walks local roots and produces ordered upload candidates."""

    def __init__(self, allowed_extensions: Optional[Iterable[str]] = None):
        self.allowed_extensions = normalize_extensions(allowed_extensions)
        self.logger = get_logger(self.__class__.__name__)

    def select(self, roots: Sequence[Union[str, Path]], checkpoint: datetime) -> List[FileCandidate]:
        """Collect files newer than ``checkpoint``, oldest first.

        Args:
            roots: Local directories to scan, in configured order
            checkpoint: Only files modified strictly after this instant qualify

        Returns:
            Candidates sorted ascending by modification time (path breaks ties)
        """
        candidates: List[FileCandidate] = []

        for root in roots:
            root_path = Path(root)
            if not root_path.is_dir():
                self.logger.warning("Folder not found, skipping", folder=str(root))
                continue

            found = 0
            for candidate in self._scan_root(root_path, checkpoint):
                candidates.append(candidate)
                found += 1

            self.logger.debug("Scanned folder", folder=str(root_path), candidates=found)

        candidates.sort(key=lambda c: (c.modified_at, str(c.path)))

        self.logger.info(
            "Change selection complete",
            roots=len(roots),
            candidates=len(candidates),
            checkpoint=checkpoint.isoformat()
        )
        return candidates

    def _scan_root(self, root: Path, checkpoint: datetime) -> Iterable[FileCandidate]:
        absolute_root = Path(os.path.abspath(root))

        def on_error(error: OSError):
            self.logger.warning("Cannot read directory", path=error.filename, error=str(error))

        for dirpath, _dirnames, filenames in os.walk(absolute_root, onerror=on_error):
            for filename in filenames:
                path = Path(dirpath) / filename

                if not is_allowed(path, self.allowed_extensions):
                    continue

                try:
                    stat_result = path.stat()
                except OSError as e:
                    self.logger.warning("Cannot stat file", path=str(path), error=str(e))
                    continue

                modified_at = modified_utc(stat_result)
                if modified_at <= checkpoint:
                    continue

                yield FileCandidate(
                    path=path,
                    root=absolute_root,
                    modified_at=modified_at,
                    size=stat_result.st_size
                )
