"""Periodic backup runs on APScheduler."""

import signal
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.events import EVENT_JOB_EXECUTED, EVENT_JOB_ERROR, EVENT_JOB_MISSED

from ..config.schema import ScheduleSettings, ScheduleType
from ..core.models import RunStatus
from ..exceptions import BackupAgentError, ConfigurationError
from ..utils.logging import get_logger

JOB_ID = "backup"


class SchedulerError(BackupAgentError):
    """Raised when scheduler operations fail."""
    pass


class BackupScheduler:
    """Runs one backup job on an interval or cron schedule.

    The job fires once immediately, then per the trigger. Runs never overlap:
    a run still in progress when the next one is due absorbs it.
    """

    def __init__(
        self,
        job: Callable[[], Any],
        schedule: ScheduleSettings,
        scheduler: Optional[BlockingScheduler] = None
    ):
        """Initialize backup scheduler.

        Args:
            job: Callable performing one backup run
            schedule: Schedule section of the settings file
            scheduler: Scheduler to use instead of a new BlockingScheduler
        """
        if schedule.type == ScheduleType.ONCE:
            raise SchedulerError("Schedule type 'once' does not need a scheduler")

        self.job = job
        self.schedule = schedule
        self.logger = get_logger(self.__class__.__name__)

        self.scheduler = scheduler or BlockingScheduler(
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': 300
            },
            timezone=timezone.utc
        )

        self.stats: Dict[str, Any] = {
            "run_count": 0,
            "success_count": 0,
            "error_count": 0,
            "last_run": None,
            "last_error": None,
        }

        self.scheduler.add_listener(self._job_executed, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(self._job_error, EVENT_JOB_ERROR)
        self.scheduler.add_listener(self._job_missed, EVENT_JOB_MISSED)

    def create_trigger(self):
        """Build the APScheduler trigger for the configured schedule."""
        if self.schedule.type == ScheduleType.INTERVAL:
            return IntervalTrigger(minutes=self.schedule.interval_minutes)

        if self.schedule.type == ScheduleType.CRON:
            if not self.schedule.cron_expression:
                raise ConfigurationError("Cron schedule requires Schedule.CronExpression")
            try:
                return CronTrigger.from_crontab(self.schedule.cron_expression, timezone=timezone.utc)
            except ValueError as e:
                raise ConfigurationError(f"Invalid cron expression {self.schedule.cron_expression!r}: {e}")

        raise SchedulerError(f"Unsupported schedule type: {self.schedule.type}")

    def add_job(self):
        return self.scheduler.add_job(
            self.job,
            trigger=self.create_trigger(),
            id=JOB_ID,
            name="Backup run",
            replace_existing=True,
            next_run_time=datetime.now(timezone.utc)
        )

    def start(self, install_signal_handlers: bool = True):
        """Schedule the job and block until stopped."""
        job = self.add_job()

        if install_signal_handlers:
            self._install_signal_handlers()

        self.logger.info(
            "Scheduler started",
            schedule=self.schedule.type.value,
            interval_minutes=self.schedule.interval_minutes if self.schedule.type == ScheduleType.INTERVAL else None,
            cron=self.schedule.cron_expression,
            job_id=job.id
        )

        self.scheduler.start()
        self.logger.info("Scheduler stopped", **self.stats_summary())

    def stop(self, wait: bool = False):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

    def stats_summary(self) -> Dict[str, Any]:
        return {
            "run_count": self.stats["run_count"],
            "success_count": self.stats["success_count"],
            "error_count": self.stats["error_count"],
        }

    def _install_signal_handlers(self):
        def handle(signum, _frame):
            self.logger.info("Shutdown signal received", signal=signal.Signals(signum).name)
            self.stop(wait=False)

        signal.signal(signal.SIGINT, handle)
        signal.signal(signal.SIGTERM, handle)

    def _job_executed(self, event):
        """Handle job execution event."""
        self.stats["run_count"] += 1
        self.stats["success_count"] += 1
        self.stats["last_run"] = datetime.now(timezone.utc)

        result = getattr(event, 'retval', None)
        if isinstance(result, RunStatus):
            self.logger.info(
                "Scheduled backup completed",
                job_id=event.job_id,
                uploaded=result.files_uploaded,
                errors=result.errors
            )
        else:
            self.logger.info("Scheduled backup completed", job_id=event.job_id)

    def _job_error(self, event):
        """Handle job error event."""
        self.stats["run_count"] += 1
        self.stats["error_count"] += 1
        self.stats["last_run"] = datetime.now(timezone.utc)
        self.stats["last_error"] = str(event.exception)

        self.logger.error(
            "Scheduled backup failed",
            job_id=event.job_id,
            error=str(event.exception)
        )

    def _job_missed(self, event):
        """Handle job missed event."""
        self.logger.warning(
            "Scheduled backup missed",
            job_id=event.job_id,
            scheduled_run_time=str(event.scheduled_run_time)
        )
