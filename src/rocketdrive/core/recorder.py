"""Run recorder: counters, timestamps and the terminal status file."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Union

from .models import RunStatus
from ..utils.logging import get_logger


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RunRecorder:
    """Accumulates the counters of one run and persists them at the end."""

    def __init__(self, clock: Callable[[], datetime] = utc_now):
        self.clock = clock
        self.logger = get_logger(self.__class__.__name__)
        self.status = RunStatus(started_utc=self.clock())

    def start(self) -> RunStatus:
        self.status = RunStatus(started_utc=self.clock())
        return self.status

    def scanned(self, count: int) -> None:
        self.status.files_scanned = count

    def uploaded(self) -> None:
        self.status.files_uploaded += 1

    def skipped_existing(self) -> None:
        self.status.skipped_existing += 1

    def skipped_unstable(self) -> None:
        self.status.skipped_unstable += 1

    def error(self) -> None:
        self.status.errors += 1

    def finish(self, notes: Optional[str] = None) -> RunStatus:
        self.status.finished_utc = self.clock()
        if notes is not None:
            self.status.notes = notes
        return self.status

    def summary(self, error: Optional[str] = None) -> str:
        """Plain-text body for run notifications."""
        status = self.status
        finished = status.finished_utc or self.clock()
        lines = [
            f"Started: {status.started_utc.isoformat()}",
            f"Finished: {finished.isoformat()}",
            f"Scanned: {status.files_scanned}",
            f"Uploaded: {status.files_uploaded}",
            f"Skipped(existing): {status.skipped_existing}",
            f"Skipped(unstable): {status.skipped_unstable}",
            f"Errors: {status.errors}",
        ]
        body = "\n".join(lines)
        if error:
            body += f"\n\nError: {error}"
        return body

    def persist(self, path: Union[str, Path]) -> bool:
        """Write the status record as indented JSON, omitting null fields.

        Failures are logged and swallowed so they never replace the run's own
        outcome.
        """
        status_path = Path(path)
        try:
            status_path.parent.mkdir(parents=True, exist_ok=True)
            status_path.write_text(json.dumps(self.status.to_dict(), indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            self.logger.error("Failed to write status file", path=str(status_path), error=str(e))
            return False

        self.logger.debug("Status file written", path=str(status_path))
        return True
