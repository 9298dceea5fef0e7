"""Tests for transient-disconnect classification and retry policy."""

import pytest
from sqlalchemy.exc import OperationalError

from tutoring_engine.exceptions import (
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
)
from tutoring_engine.retry import RetryPolicy, is_transient_disconnect, run_with_retry


class TestIsTransientDisconnect:
    """Test error classification."""

    @pytest.mark.parametrize(
        "message",
        [
            "server closed the connection unexpectedly",
            "Connection reset by peer",
            "read ECONNRESET",
            "Connection is closed",
            "Error code 10054",
            "An existing connection was forcibly closed by the remote host",
        ],
    )
    def test_disconnect_messages(self, message):
        assert is_transient_disconnect(Exception(message)) is True

    def test_os_level_reset(self):
        assert is_transient_disconnect(ConnectionResetError()) is True

    def test_wrapped_driver_error(self):
        """The DBAPI original inside a SQLAlchemy error is inspected."""
        exc = OperationalError("SELECT 1", {}, Exception("server closed the connection"))
        assert is_transient_disconnect(exc) is True

    def test_cause_chain(self):
        try:
            try:
                raise ConnectionResetError("reset")
            except ConnectionResetError as inner:
                raise RuntimeError("query failed") from inner
        except RuntimeError as outer:
            assert is_transient_disconnect(outer) is True

    @pytest.mark.parametrize(
        "exc",
        [
            ValueError("bad input"),
            Exception("syntax error at or near SELECT"),
            ForbiddenError("You are not assigned to this lesson"),
            InvalidStateError("start", "COMPLETED"),
            NotFoundError("Lesson", "x"),
            ValidationError("Total must equal exactly 100. Current total: 99"),
        ],
    )
    def test_not_transient(self, exc):
        assert is_transient_disconnect(exc) is False

    def test_domain_errors_never_transient(self):
        """Even a domain error quoting a disconnect message is not retried."""
        assert is_transient_disconnect(ForbiddenError("connection reset")) is False


class TestRetryPolicy:
    """Test backoff and retry counting."""

    def test_default_delays(self):
        policy = RetryPolicy()
        assert policy.max_retries == 2
        assert policy.delay_for(0) == pytest.approx(0.1)
        assert policy.delay_for(1) == pytest.approx(0.2)

    async def test_succeeds_after_two_transient_failures(self, retry_policy, recording_sleep):
        calls = []

        async def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise ConnectionResetError("Connection reset by peer")
            return "ok"

        assert await run_with_retry(flaky, retry_policy) == "ok"
        assert len(calls) == 3
        assert recording_sleep.delays == [pytest.approx(0.1), pytest.approx(0.2)]

    async def test_exhaustion_raises_transient_store_error(self, retry_policy, recording_sleep):
        calls = []

        async def always_down():
            calls.append(1)
            raise ConnectionResetError("Connection reset by peer")

        with pytest.raises(TransientStoreError) as exc_info:
            await run_with_retry(always_down, retry_policy, name="load lesson")

        assert len(calls) == 3
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.__cause__, ConnectionResetError)

    async def test_non_transient_not_retried(self, retry_policy, recording_sleep):
        calls = []

        async def broken():
            calls.append(1)
            raise ValueError("bad query")

        with pytest.raises(ValueError):
            await run_with_retry(broken, retry_policy)

        assert len(calls) == 1
        assert recording_sleep.delays == []

    async def test_on_retry_called_before_each_retry(self, retry_policy):
        attempts_seen = []

        async def flaky():
            if len(attempts_seen) < 2:
                raise ConnectionResetError()
            return 42

        async def on_retry(exc, attempt):
            attempts_seen.append(attempt)

        assert await run_with_retry(flaky, retry_policy, on_retry=on_retry) == 42
        assert attempts_seen == [0, 1]
