"""Scheduler package for periodic backup runs."""

from .backup_scheduler import BackupScheduler, SchedulerError

__all__ = [
    "BackupScheduler",
    "SchedulerError"
]
