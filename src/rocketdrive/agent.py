"""Backup agent: wires configuration into the engine, remote store and notifiers."""

from typing import Callable, List, Optional

from .api_clients.base import RemoteStoreClient
from .api_clients.google_drive import GoogleDriveClient
from .auth.google_credentials import build_drive_service
from .config.schema import AgentConfig
from .core.engine import BackupEngine, RUN_FAILED_SUBJECT
from .core.models import EngineOptions, FileCandidate, RunStatus
from .core.recorder import RunRecorder
from .core.selector import normalize_extensions
from .notifications import (
    EmailNotifier,
    LogNotifier,
    NotificationFanout,
    NotifyPolicy,
    TelegramNotifier,
)
from .utils.logging import get_logger


def engine_options_from_config(config: AgentConfig) -> EngineOptions:
    backup = config.backup_settings
    return EngineOptions(
        folders=tuple(backup.folders),
        allowed_extensions=normalize_extensions(backup.allowed_extensions),
        target_folder_name=backup.target_drive_folder_name,
        overwrite_existing=backup.overwrite_existing,
        upload_retry_count=backup.upload_retry_count,
        checkpoint_path=backup.last_uploaded_file_time_path,
        status_file_path=backup.status_file_path,
    )


def build_notifier(config: AgentConfig) -> NotificationFanout:
    """Log channel always, email and Telegram when enabled in the settings file."""
    notify = config.backup_settings.notify
    fanout = NotificationFanout(
        [LogNotifier()],
        policy=NotifyPolicy(on_success=notify.on_success, on_failure=notify.on_failure)
    )

    smtp = config.smtp
    if smtp.enabled:
        fanout.add(EmailNotifier(
            host=smtp.host,
            port=smtp.port,
            use_ssl=smtp.use_ssl,
            username=smtp.username,
            password=smtp.password,
            from_address=smtp.from_address,
            to_address=smtp.to_address,
        ))

    telegram = config.telegram
    if telegram.enabled:
        fanout.add(TelegramNotifier(bot_token=telegram.bot_token, chat_id=telegram.chat_id))

    return fanout


def google_drive_client_factory(config: AgentConfig) -> RemoteStoreClient:
    drive = config.google_drive
    service = build_drive_service(drive.credentials_path, drive.token_path)
    return GoogleDriveClient(service)


class BackupAgent:
    """One configured agent; each ``run_once`` is an independent engine run."""

    def __init__(
        self,
        config: AgentConfig,
        client_factory: Callable[[AgentConfig], RemoteStoreClient] = google_drive_client_factory,
        notifier: Optional[NotificationFanout] = None
    ):
        self.config = config
        self.options = engine_options_from_config(config)
        self.notifier = notifier or build_notifier(config)
        self.client_factory = client_factory
        self._client: Optional[RemoteStoreClient] = None
        self.logger = get_logger(self.__class__.__name__)

        self.logger.info(
            "Backup agent initialized",
            folders=len(self.options.folders),
            channels=[n.name for n in self.notifier.notifiers]
        )

    @property
    def client(self) -> RemoteStoreClient:
        # Built lazily so dry runs and empty configurations need no credentials
        if self._client is None:
            self._client = self.client_factory(self.config)
        return self._client

    def _engine(self, client: Optional[RemoteStoreClient]) -> BackupEngine:
        return BackupEngine(client, self.options, notifier=self.notifier)

    def run_once(self) -> RunStatus:
        """Run one backup; raises whatever aborted it."""
        client = None
        if self.options.folders:
            try:
                client = self.client
            except Exception as e:
                self.logger.error("Remote store unavailable", error=str(e), error_type=type(e).__name__)
                recorder = RunRecorder()
                recorder.finish(notes=f"Cannot connect to the remote store: {e}")
                recorder.persist(self.options.status_file_path)
                self.notifier.send(RUN_FAILED_SUBJECT, recorder.summary(error=recorder.status.notes), success=False)
                raise
        return self._engine(client).run()

    def preview(self) -> List[FileCandidate]:
        return self._engine(None).preview()
