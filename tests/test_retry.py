"""Tests for failure classification and the retry policy."""

from unittest.mock import Mock

import pytest
from structlog.testing import capture_logs

from rocketdrive.api_clients.base import (
    APIConnectionError,
    AuthenticationError,
    RateLimitError,
    RemoteStoreError,
)
from rocketdrive.core.retry import (
    ErrorKind,
    RetryPolicy,
    RetryStatus,
    backoff_delay,
    classify,
)
from rocketdrive.exceptions import FatalOperationError, RetryExhaustedError


class TestClassify:

    @pytest.mark.parametrize("error", [
        AuthenticationError("denied", status_code=401),
        PermissionError("read-only"),
    ])
    def test_fatal(self, error):
        assert classify(error) == ErrorKind.FATAL

    @pytest.mark.parametrize("error", [
        RateLimitError("slow down"),
        APIConnectionError("reset"),
        RemoteStoreError("unavailable", status_code=503),
        RemoteStoreError("quota", status_code=400, reason="userRateLimitExceeded"),
        OSError("disk"),
        TimeoutError("timed out"),
        ConnectionResetError("reset"),
    ])
    def test_transient(self, error):
        assert classify(error) == ErrorKind.TRANSIENT

    @pytest.mark.parametrize("error", [
        RemoteStoreError("bad request", status_code=400),
        ValueError("boom"),
    ])
    def test_unknown(self, error):
        assert classify(error) == ErrorKind.UNKNOWN


def test_backoff_is_linear_and_capped():
    assert [backoff_delay(n) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]
    assert backoff_delay(15) == 30.0
    assert backoff_delay(100) == 30.0


class TestRetryPolicy:

    def setup_method(self):
        self.sleeps = []
        self.policy = RetryPolicy(max_attempts=3, sleep=self.sleeps.append)

    def test_success_first_try(self):
        operation = Mock(return_value="id-1")

        assert self.policy.execute(operation, label="upload") == "id-1"
        assert operation.call_count == 1
        assert self.sleeps == []

    def test_recovers_after_transient_failures(self):
        operation = Mock(side_effect=[OSError("a"), RateLimitError("b"), "id-2"])

        outcome = self.policy.attempt(operation, label="upload")

        assert outcome.status == RetryStatus.SUCCESS
        assert outcome.attempts == 3
        assert outcome.value == "id-2"
        assert self.sleeps == [2.0, 4.0]

    def test_server_retry_hint_is_logged(self):
        operation = Mock(side_effect=[RateLimitError("slow down", retry_after=9), "ok"])

        with capture_logs() as logs:
            assert self.policy.execute(operation, label="list") == "ok"

        (warning,) = [entry for entry in logs if entry["log_level"] == "warning"]
        assert warning["retry_after"] == 9
        assert warning["delay_seconds"] == 2.0

    def test_exhaustion_calls_exactly_max_attempts(self):
        error = OSError("still down")
        operation = Mock(side_effect=error)

        with pytest.raises(RetryExhaustedError) as excinfo:
            self.policy.execute(operation, label="file.txt")

        assert operation.call_count == 3
        assert excinfo.value.attempts == 3
        assert excinfo.value.last_error is error
        assert excinfo.value.__cause__ is error
        assert "Failed after 3 attempts for file.txt" in str(excinfo.value)
        # No wait after the final attempt
        assert self.sleeps == [2.0, 4.0]

    def test_unknown_errors_are_retried(self):
        operation = Mock(side_effect=[ValueError("odd"), "ok"])

        assert self.policy.execute(operation) == "ok"
        assert operation.call_count == 2

    def test_fatal_error_stops_after_one_call(self):
        error = AuthenticationError("token revoked", status_code=401)
        operation = Mock(side_effect=error)

        with pytest.raises(FatalOperationError) as excinfo:
            self.policy.execute(operation, label="upload")

        assert operation.call_count == 1
        assert excinfo.value.__cause__ is error
        assert "Unauthorized access for upload" in str(excinfo.value)
        assert self.sleeps == []

    def test_per_call_attempt_override(self):
        operation = Mock(side_effect=OSError("x"))

        outcome = self.policy.attempt(operation, max_attempts=5)

        assert outcome.status == RetryStatus.EXHAUSTED
        assert operation.call_count == 5

    @pytest.mark.parametrize("requested", [0, -2])
    def test_attempts_are_clamped_to_one(self, requested):
        operation = Mock(side_effect=OSError("x"))
        policy = RetryPolicy(max_attempts=requested, sleep=self.sleeps.append)

        outcome = policy.attempt(operation)

        assert outcome.status == RetryStatus.EXHAUSTED
        assert operation.call_count == 1
        assert not outcome.succeeded
