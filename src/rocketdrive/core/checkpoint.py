"""Checkpoint store: the newest modification time already uploaded."""

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from .models import MIN_TIMESTAMP
from ..exceptions import CheckpointError
from ..utils.logging import get_logger

# fromisoformat before 3.11 only accepts 3 or 6 fractional digits
EXCESS_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_timestamp(text: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing ``Z`` and fractions longer than microseconds, as
    written by .NET round-trip formatting. Naive values are taken to be UTC.
    """
    value = text.strip()
    if not value:
        return None

    if value.endswith(("Z", "z")):
        value = value[:-1] + "+00:00"

    value = EXCESS_FRACTION.sub(r"\1", value)

    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Round-trip ISO-8601 representation in UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


class CheckpointStore:
    """Reads and writes the checkpoint file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = get_logger(self.__class__.__name__)

    def read(self) -> datetime:
        """Read the checkpoint.

        Returns:
            The stored timestamp, or the minimum timestamp when the file is
            missing or does not hold a timestamp

        Raises:
            CheckpointError: The file exists but could not be read
        """
        if not self.path.exists():
            self.logger.info("No checkpoint found, uploading everything", path=str(self.path))
            return MIN_TIMESTAMP

        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self.logger.error("Checkpoint file unreadable", path=str(self.path), error=str(e))
            raise CheckpointError(f"Issue while reading checkpoint file {self.path}: {e}") from e

        parsed = parse_timestamp(text)
        if parsed is None:
            self.logger.warning(
                "Checkpoint file does not contain a timestamp, uploading everything",
                path=str(self.path),
                content=text[:64]
            )
            return MIN_TIMESTAMP

        self.logger.info("Checkpoint loaded", path=str(self.path), checkpoint=format_timestamp(parsed))
        return parsed

    def write(self, timestamp: datetime) -> bool:
        """Persist ``timestamp``. Best effort: failures are logged, not raised.

        A lost write only makes the next run rescan more files, and files
        already on the remote are skipped.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(format_timestamp(timestamp), encoding="utf-8")
        except OSError as e:
            self.logger.warning("Could not write checkpoint", path=str(self.path), error=str(e))
            return False

        self.logger.info("Checkpoint updated", path=str(self.path), checkpoint=format_timestamp(timestamp))
        return True
