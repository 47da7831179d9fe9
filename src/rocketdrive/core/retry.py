"""Retry policy: failure classification, attempt limits and linear backoff."""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from ..api_clients.base import (
    RemoteStoreError,
    RateLimitError,
    AuthenticationError,
    APIConnectionError
)
from ..exceptions import FatalOperationError, RetryExhaustedError
from ..utils.logging import get_logger

DEFAULT_MAX_ATTEMPTS = 3
BACKOFF_STEP_SECONDS = 2
MAX_BACKOFF_SECONDS = 30

TRANSIENT_STATUS_CODES = frozenset({
    429,  # Too Many Requests
    408,  # Request Timeout
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
})

TRANSIENT_REASONS = frozenset({
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "backendError",
})


class ErrorKind(str, Enum):
    """How the retry loop treats a failure."""
    TRANSIENT = "transient"
    FATAL = "fatal"
    UNKNOWN = "unknown"


class RetryStatus(str, Enum):
    """Outcome tag of a retried operation."""
    SUCCESS = "success"
    EXHAUSTED = "exhausted"
    FATAL = "fatal"


@dataclass
class RetryOutcome:
    """Result of running an operation under the retry policy."""

    status: RetryStatus
    attempts: int
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RetryStatus.SUCCESS


def classify(error: BaseException) -> ErrorKind:
    """Map a failure onto a retry decision.

    Authorization failures are fatal. Network and I/O errors, rate limiting
    and transient backend responses are transient. Anything else is unknown,
    which the policy retries like a transient error.
    """
    # PermissionError is an OSError, so it has to be checked first
    if isinstance(error, (AuthenticationError, PermissionError)):
        return ErrorKind.FATAL

    if isinstance(error, (RateLimitError, APIConnectionError)):
        return ErrorKind.TRANSIENT

    if isinstance(error, RemoteStoreError):
        if error.status_code in TRANSIENT_STATUS_CODES or error.reason in TRANSIENT_REASONS:
            return ErrorKind.TRANSIENT
        return ErrorKind.UNKNOWN

    if isinstance(error, (OSError, TimeoutError, ConnectionError)):
        return ErrorKind.TRANSIENT

    return ErrorKind.UNKNOWN


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after the ``attempt``-th failure: ``min(30, 2 * attempt)``."""
    return float(min(MAX_BACKOFF_SECONDS, BACKOFF_STEP_SECONDS * max(1, attempt)))


class RetryPolicy:
    """Runs operations with a bounded number of attempts."""

    def __init__(
        self,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        sleep: Callable[[float], None] = time.sleep,
        classifier: Callable[[BaseException], ErrorKind] = classify
    ):
        self.max_attempts = max(1, int(max_attempts))
        self.sleep = sleep
        self.classifier = classifier
        self.logger = get_logger(self.__class__.__name__)

    def attempt(
        self,
        operation: Callable[[], Any],
        label: str = "operation",
        max_attempts: Optional[int] = None
    ) -> RetryOutcome:
        """Run ``operation`` until it succeeds, fails fatally, or attempts run out.

        Never raises for failures of ``operation``; the outcome carries them.
        """
        limit = max(1, int(max_attempts)) if max_attempts is not None else self.max_attempts
        attempts = 0
        last_error: Optional[BaseException] = None

        while attempts < limit:
            attempts += 1
            try:
                value = operation()
                return RetryOutcome(status=RetryStatus.SUCCESS, attempts=attempts, value=value)
            except Exception as e:
                last_error = e
                kind = self.classifier(e)

                if kind == ErrorKind.FATAL:
                    self.logger.error(
                        "Fatal error, not retrying",
                        label=label,
                        attempt=attempts,
                        error=str(e),
                        error_type=type(e).__name__
                    )
                    return RetryOutcome(status=RetryStatus.FATAL, attempts=attempts, error=e)

                if attempts >= limit:
                    break

                delay = backoff_delay(attempts)
                details = {}
                if getattr(e, "retry_after", None) is not None:
                    details["retry_after"] = e.retry_after
                self.logger.warning(
                    "Retryable error, backing off",
                    label=label,
                    attempt=attempts,
                    max_attempts=limit,
                    kind=kind.value,
                    delay_seconds=delay,
                    error=str(e),
                    **details
                )
                self.sleep(delay)

        self.logger.error(
            "Operation failed after all attempts",
            label=label,
            attempts=attempts,
            error=str(last_error)
        )
        return RetryOutcome(status=RetryStatus.EXHAUSTED, attempts=attempts, error=last_error)

    def execute(
        self,
        operation: Callable[[], Any],
        label: str = "operation",
        max_attempts: Optional[int] = None
    ) -> Any:
        """Run ``operation`` under the policy and return its value.

        Raises:
            FatalOperationError: The operation failed with a non-retryable error
            RetryExhaustedError: Every attempt failed; carries the last error
        """
        outcome = self.attempt(operation, label=label, max_attempts=max_attempts)

        if outcome.status == RetryStatus.SUCCESS:
            return outcome.value

        if outcome.status == RetryStatus.FATAL:
            raise FatalOperationError(
                f"Unauthorized access for {label}: {outcome.error}", label=label
            ) from outcome.error

        raise RetryExhaustedError(
            f"Failed after {outcome.attempts} attempts for {label}: {outcome.error}",
            attempts=outcome.attempts,
            last_error=outcome.error,
            label=label
        ) from outcome.error
