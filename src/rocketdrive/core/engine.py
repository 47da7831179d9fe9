"""Backup engine: one incremental run from local roots to the remote store."""

import os
from datetime import datetime
from typing import Callable, List, Optional

from .checkpoint import CheckpointStore, format_timestamp
from .mirror import RemoteHierarchyMirror
from .models import EngineOptions, FileCandidate, RemoteFolderHandle, RunStatus
from .recorder import RunRecorder, utc_now
from .retry import RetryPolicy
from .selector import ChangeSelector, modified_utc, relative_segments
from ..api_clients.base import RemoteStoreClient
from ..notifications.fanout import NotificationFanout
from ..utils.logging import get_logger, log_execution_time

RUN_COMPLETED_SUBJECT = "Backup run completed"
RUN_FAILED_SUBJECT = "Backup run failed"


class BackupEngine:
    """Selects changed files, mirrors their folders remotely and uploads them.

    Candidates are processed one at a time, oldest first. A failure on one
    file is counted and reported but never stops the run; only setup errors
    (unreadable checkpoint, remote root unreachable) and unexpected
    exceptions abort it. The status file is written whatever happens.
    """

    def __init__(
        self,
        client: RemoteStoreClient,
        options: EngineOptions,
        notifier: Optional[NotificationFanout] = None,
        retry_policy: Optional[RetryPolicy] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.client = client
        self.options = options
        self.notifier = notifier or NotificationFanout()
        self.retry = retry_policy or RetryPolicy(max_attempts=options.upload_retry_count)
        self.clock = clock
        self.checkpoint_store = CheckpointStore(options.checkpoint_path)
        self.selector = ChangeSelector(options.allowed_extensions)
        self.logger = get_logger(self.__class__.__name__)

    @log_execution_time
    def run(self) -> RunStatus:
        """Execute one backup run.

        Returns:
            The persisted RunStatus

        Raises:
            Whatever aborted the run, after status and notification are handled
        """
        recorder = RunRecorder(clock=self.clock)
        recorder.start()

        self.logger.info(
            "Backup run started",
            folders=list(self.options.folders),
            target=self.options.target_folder_name,
            overwrite=self.options.overwrite_existing
        )

        try:
            self._run(recorder)
        except Exception as e:
            recorder.finish(notes=str(e))
            self.logger.error("Backup run failed", error=str(e), error_type=type(e).__name__)
            self.notifier.send(RUN_FAILED_SUBJECT, recorder.summary(error=str(e)), success=False)
            raise
        finally:
            if recorder.status.finished_utc is None:
                recorder.finish()
            recorder.persist(self.options.status_file_path)

        return recorder.status

    def preview(self) -> List[FileCandidate]:
        """Candidates the next run would consider, without touching the remote store."""
        checkpoint = self.checkpoint_store.read()
        return self.selector.select(list(self.options.folders), checkpoint)

    def _run(self, recorder: RunRecorder) -> None:
        if not self.options.folders:
            message = "No folders configured for backup"
            self.logger.warning(message)
            recorder.finish(notes=message)
            self.notifier.send(RUN_FAILED_SUBJECT, recorder.summary(error=message), success=False)
            return

        checkpoint = self.checkpoint_store.read()
        candidates = self.selector.select(list(self.options.folders), checkpoint)
        recorder.scanned(len(candidates))

        if not candidates:
            self.logger.info("No new files to upload")
        else:
            newest_uploaded = self._upload_all(candidates, checkpoint, recorder)

            if newest_uploaded > checkpoint:
                self.checkpoint_store.write(newest_uploaded)

        recorder.finish()
        status = recorder.status
        self.logger.info(
            "Backup run completed",
            scanned=status.files_scanned,
            uploaded=status.files_uploaded,
            skipped_existing=status.skipped_existing,
            skipped_unstable=status.skipped_unstable,
            errors=status.errors
        )
        self.notifier.send(RUN_COMPLETED_SUBJECT, recorder.summary(), success=True)

    def _upload_all(
        self,
        candidates: List[FileCandidate],
        checkpoint: datetime,
        recorder: RunRecorder
    ) -> datetime:
        """Process every candidate; returns the newest uploaded modification time."""
        mirror = RemoteHierarchyMirror(self.client)
        target = self.options.target_folder_name
        root = self.retry.execute(lambda: mirror.ensure_root(target), label=f"remote folder {target}")

        newest_uploaded = checkpoint
        for candidate in candidates:
            try:
                uploaded = self._process(candidate, root, mirror, checkpoint, recorder)
            except Exception as e:
                recorder.error()
                self.logger.error("Failed to upload", path=str(candidate.path), error=str(e))
                self.notifier.send(
                    RUN_FAILED_SUBJECT,
                    f"Failed to upload {candidate.path}: {e}",
                    success=False
                )
                continue

            if uploaded and candidate.modified_at > newest_uploaded:
                newest_uploaded = candidate.modified_at

        if newest_uploaded > checkpoint:
            self.logger.info("Newest uploaded file", modified_at=format_timestamp(newest_uploaded))

        return newest_uploaded

    def _process(
        self,
        candidate: FileCandidate,
        root: RemoteFolderHandle,
        mirror: RemoteHierarchyMirror,
        checkpoint: datetime,
        recorder: RunRecorder
    ) -> bool:
        """Upload one candidate. Returns True only when a file was uploaded."""
        path = str(candidate.path)

        if not self._is_stable(candidate):
            recorder.skipped_unstable()
            self.logger.warning("Skipping (changed since scan)", path=path)
            return False

        segments = relative_segments(candidate.root, candidate.path.parent)
        destination = self.retry.execute(
            lambda: mirror.ensure_nested_path(root, segments),
            label=f"remote folder for {path}"
        )

        existing_id = self.retry.execute(
            lambda: self.client.find_file_in_folder(candidate.name, destination.folder_id),
            label=f"lookup of {path}"
        )

        if existing_id:
            # Compared with the checkpoint, not with the remote copy's timestamp
            if self.options.overwrite_existing and candidate.modified_at > checkpoint:
                self.logger.info("Overwriting existing", path=path, remote_id=existing_id)
                self.retry.execute(
                    lambda: self.client.delete_file(existing_id),
                    label=f"delete of remote {candidate.name}"
                )
            else:
                recorder.skipped_existing()
                self.logger.info("Skipping (already exists)", path=path, destination=destination.display_path)
                return False

        self.logger.info("Uploading", path=path, destination=destination.display_path)
        file_id = self.retry.execute(
            lambda: self.client.upload_file_to_folder(candidate.path, destination.folder_id),
            label=path,
            max_attempts=self.options.upload_retry_count
        )

        recorder.uploaded()
        self.logger.info("Uploaded", path=path, file_id=file_id)
        return True

    def _is_stable(self, candidate: FileCandidate) -> bool:
        """False when the file vanished or was modified after it was selected."""
        try:
            stat_result = os.stat(candidate.path)
        except OSError:
            return False
        return stat_result.st_size == candidate.size and modified_utc(stat_result) == candidate.modified_at
