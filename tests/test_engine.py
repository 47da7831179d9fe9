"""Tests for the backup engine run against an in-memory remote store."""

import json

import pytest

from conftest import write_file, utc

from rocketdrive.api_clients.base import AuthenticationError
from rocketdrive.core.checkpoint import CheckpointStore
from rocketdrive.core.engine import BackupEngine, RUN_COMPLETED_SUBJECT, RUN_FAILED_SUBJECT
from rocketdrive.core.models import EngineOptions
from rocketdrive.core.retry import RetryPolicy
from rocketdrive.exceptions import CheckpointError, FatalOperationError
from rocketdrive.notifications import NotificationFanout, NotifyPolicy, Notifier


class RecordingNotifier(Notifier):
    name = "recording"

    def __init__(self):
        super().__init__()
        self.events = []

    def notify(self, event):
        self.events.append(event)
        return True


class TestBackupEngine:

    @pytest.fixture(autouse=True)
    def workspace(self, tmp_path, remote_store):
        self.tmp_path = tmp_path
        self.source = tmp_path / "source"
        self.source.mkdir()
        self.store = remote_store
        self.checkpoint_path = tmp_path / "state" / "last_uploaded.txt"
        self.status_path = tmp_path / "logs" / "status.json"
        self.channel = RecordingNotifier()
        self.sleeps = []

    def make_engine(self, on_success=True, on_failure=True, **overrides):
        options = dict(
            folders=(str(self.source),),
            target_folder_name="Backups",
            checkpoint_path=str(self.checkpoint_path),
            status_file_path=str(self.status_path),
        )
        options.update(overrides)
        notifier = NotificationFanout(
            [self.channel],
            policy=NotifyPolicy(on_success=on_success, on_failure=on_failure)
        )
        return BackupEngine(
            self.store,
            EngineOptions(**options),
            notifier=notifier,
            retry_policy=RetryPolicy(max_attempts=3, sleep=self.sleeps.append)
        )

    def read_status(self):
        return json.loads(self.status_path.read_text())

    def test_first_run_uploads_and_mirrors_structure(self):
        write_file(self.source / "top.txt", modified=utc(2024, 1, 1))
        write_file(self.source / "docs" / "2024" / "report.pdf", modified=utc(2024, 2, 1))

        status = self.make_engine().run()

        assert status.files_scanned == 2
        assert status.files_uploaded == 2
        assert status.errors == 0
        assert self.store.file_paths() == ["Backups/docs/2024/report.pdf", "Backups/top.txt"]
        assert CheckpointStore(self.checkpoint_path).read() == utc(2024, 2, 1)

        persisted = self.read_status()
        assert persisted["FilesUploaded"] == 2
        assert "FinishedUtc" in persisted
        assert "Notes" not in persisted

    def test_second_run_is_idempotent(self):
        write_file(self.source / "a.txt", modified=utc(2024, 1, 1))
        self.make_engine().run()
        self.store.calls.clear()

        status = self.make_engine().run()

        assert status.files_scanned == 0
        assert status.files_uploaded == 0
        assert self.store.calls == []

    def test_lost_checkpoint_skips_existing_remote_files(self):
        write_file(self.source / "a.txt", modified=utc(2024, 1, 1))
        self.make_engine().run()
        self.checkpoint_path.unlink()

        status = self.make_engine().run()

        assert status.files_scanned == 1
        assert status.skipped_existing == 1
        assert self.store.count("upload") == 1
        assert len(self.store.files) == 1

    def test_overwrite_replaces_changed_file(self):
        path = write_file(self.source / "a.txt", modified=utc(2024, 1, 1))
        self.make_engine().run()
        write_file(path, content="changed", modified=utc(2024, 3, 1))

        status = self.make_engine(overwrite_existing=True).run()

        assert status.files_uploaded == 1
        assert self.store.count("delete") == 1
        assert self.store.file_paths() == ["Backups/a.txt"]
        assert CheckpointStore(self.checkpoint_path).read() == utc(2024, 3, 1)

    def test_without_overwrite_changed_file_is_skipped(self):
        path = write_file(self.source / "a.txt", modified=utc(2024, 1, 1))
        self.make_engine().run()
        write_file(path, content="changed", modified=utc(2024, 3, 1))

        status = self.make_engine().run()

        assert status.skipped_existing == 1
        assert status.files_uploaded == 0
        assert self.store.count("delete") == 0
        # Checkpoint only moves for uploaded files
        assert CheckpointStore(self.checkpoint_path).read() == utc(2024, 1, 1)

    def test_failed_file_does_not_stop_the_run(self):
        write_file(self.source / "a.txt", modified=utc(2024, 1, 1))
        write_file(self.source / "b.txt", modified=utc(2024, 1, 2))
        write_file(self.source / "c.txt", modified=utc(2024, 1, 3))
        self.store.upload_failures["b.txt"] = [OSError("reset")] * 3

        status = self.make_engine(on_success=False).run()

        assert status.files_uploaded == 2
        assert status.errors == 1
        assert sum(1 for call in self.store.calls if call[:2] == ("upload", "b.txt")) == 3
        assert self.sleeps == [2.0, 4.0]
        assert CheckpointStore(self.checkpoint_path).read() == utc(2024, 1, 3)

        failures = [e for e in self.channel.events if not e.success]
        assert len(failures) == 1
        assert "b.txt" in failures[0].body

    def test_transient_upload_failure_recovers(self):
        write_file(self.source / "a.txt", modified=utc(2024, 1, 1))
        self.store.upload_failures["a.txt"] = [TimeoutError("slow")]

        status = self.make_engine().run()

        assert status.files_uploaded == 1
        assert status.errors == 0

    def test_fatal_file_error_is_not_retried(self):
        write_file(self.source / "a.txt", modified=utc(2024, 1, 1))
        self.store.upload_failures["a.txt"] = [AuthenticationError("revoked", status_code=403)]

        status = self.make_engine().run()

        assert status.errors == 1
        assert self.store.count("upload") == 1
        assert not self.checkpoint_path.exists()

    def test_checkpoint_never_moves_backwards(self):
        CheckpointStore(self.checkpoint_path).write(utc(2024, 6, 1))
        write_file(self.source / "new.txt", modified=utc(2024, 7, 1))
        self.store.upload_failures["new.txt"] = [OSError("down")] * 3

        self.make_engine().run()

        assert CheckpointStore(self.checkpoint_path).read() == utc(2024, 6, 1)

    def test_success_summary_respects_policy(self):
        write_file(self.source / "a.txt", modified=utc(2024, 1, 1))

        self.make_engine(on_success=False).run()
        assert self.channel.events == []

        write_file(self.source / "b.txt", modified=utc(2024, 2, 1))
        self.make_engine(on_success=True).run()

        (event,) = self.channel.events
        assert event.success
        assert event.subject == RUN_COMPLETED_SUBJECT
        assert "Uploaded: 1" in event.body

    def test_empty_selection_makes_no_remote_calls(self):
        status = self.make_engine().run()

        assert status.files_scanned == 0
        assert self.store.calls == []
        assert self.channel.events[0].subject == RUN_COMPLETED_SUBJECT
        assert self.status_path.exists()

    def test_no_folders_configured(self):
        status = self.make_engine(folders=()).run()

        assert status.notes == "No folders configured for backup"
        assert self.store.calls == []
        (event,) = self.channel.events
        assert not event.success
        assert self.read_status()["Notes"] == "No folders configured for backup"

    def test_file_changed_after_selection_is_skipped(self):
        path = write_file(self.source / "growing.log", modified=utc(2024, 1, 1))
        engine = self.make_engine()
        select = engine.selector.select

        def select_then_append(roots, checkpoint):
            candidates = select(roots, checkpoint)
            write_file(path, content="data and more data", modified=utc(2024, 1, 2))
            return candidates

        engine.selector.select = select_then_append
        status = engine.run()

        assert status.skipped_unstable == 1
        assert status.files_uploaded == 0
        assert self.store.count("upload") == 0
        assert not self.checkpoint_path.exists()

    def test_extension_filter_applies(self):
        write_file(self.source / "keep.pdf", modified=utc(2024, 1, 1))
        write_file(self.source / "skip.tmp", modified=utc(2024, 1, 1))

        status = self.make_engine(allowed_extensions=frozenset({".pdf"})).run()

        assert status.files_scanned == 1
        assert self.store.file_paths() == ["Backups/keep.pdf"]

    def test_unreadable_checkpoint_aborts_run(self):
        self.checkpoint_path.mkdir(parents=True)

        with pytest.raises(CheckpointError):
            self.make_engine().run()

        persisted = self.read_status()
        assert "checkpoint" in persisted["Notes"]
        (event,) = self.channel.events
        assert event.subject == RUN_FAILED_SUBJECT
        assert "Error:" in event.body

    def test_failure_notification_can_be_disabled(self):
        write_file(self.source / "a.txt", modified=utc(2024, 1, 1))
        self.store.upload_failures["a.txt"] = [OSError("down")] * 3
        self.checkpoint_path.mkdir(parents=True)

        with pytest.raises(CheckpointError):
            self.make_engine(on_failure=False).run()

        assert self.channel.events == []
        assert self.status_path.exists()

    def test_unreachable_root_aborts_run(self):
        write_file(self.source / "a.txt", modified=utc(2024, 1, 1))

        def denied(name, parent_id=None):
            raise AuthenticationError("forbidden", status_code=403)

        self.store.find_folder = denied

        with pytest.raises(FatalOperationError):
            self.make_engine().run()

        assert self.read_status()["Errors"] == 0
        assert not self.checkpoint_path.exists()

    def test_preview_does_not_touch_remote(self):
        write_file(self.source / "a.txt", modified=utc(2024, 1, 1))

        candidates = self.make_engine().preview()

        assert [c.name for c in candidates] == ["a.txt"]
        assert self.store.calls == []
