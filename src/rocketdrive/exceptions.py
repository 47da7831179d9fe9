"""Exception hierarchy for the backup agent."""

from typing import Optional


class BackupAgentError(Exception):
    """Base exception for all backup agent errors."""
    pass


class ConfigurationError(BackupAgentError):
    """Raised when configuration loading or validation fails."""
    pass


class CheckpointError(BackupAgentError):
    """Raised when an existing checkpoint file cannot be read.

    A checkpoint that exists but cannot be read means the watermark is
    unknown, so the run must not proceed.
    """
    pass


class FatalOperationError(BackupAgentError):
    """Raised when an operation fails with an error that retrying cannot fix."""

    def __init__(self, message: str, label: Optional[str] = None):
        super().__init__(message)
        self.label = label


class RetryExhaustedError(BackupAgentError):
    """Raised when an operation still fails after every allowed attempt."""

    def __init__(
        self,
        message: str,
        attempts: int,
        last_error: Optional[BaseException] = None,
        label: Optional[str] = None
    ):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
        self.label = label


class NotificationError(BackupAgentError):
    """Raised by a notification channel when delivery fails."""
    pass
