"""Tests for bounded exponential backoff."""

import pytest
from converge.execution.retry import RetryPolicy, call_with_retry
from converge.providers.base import default_is_retryable
from converge.utils.errors import ProviderError


class TestRetryPolicy:
    """Test delay computation."""

    def test_default_delays_double_and_cap(self):
        policy = RetryPolicy()
        assert [policy.delay_for(n) for n in range(1, 8)] == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]

    def test_custom_policy(self):
        policy = RetryPolicy(base_delay=0.5, factor=3.0, max_delay=10.0)
        assert [policy.delay_for(n) for n in range(1, 5)] == [0.5, 1.5, 4.5, 10.0]


class TestCallWithRetry:
    """Test the retry loop."""

    def test_returns_first_success(self):
        attempts = []
        result = call_with_retry(lambda: "ok", RetryPolicy(), default_is_retryable,
                                 sleep=lambda s: None, on_attempt=attempts.append)
        assert result == "ok"
        assert attempts == [1]

    def test_retries_transient_errors(self):
        calls = {"n": 0}
        delays = []

        def flaky():
            calls["n"] += 1
            if calls["n"] < 3:
                raise ProviderError("busy", retryable=True)
            return calls["n"]

        assert call_with_retry(flaky, RetryPolicy(), default_is_retryable, sleep=delays.append) == 3
        assert delays == [1.0, 2.0]

    def test_non_retryable_error_propagates(self):
        def broken():
            raise ProviderError("denied")

        with pytest.raises(ProviderError, match="denied"):
            call_with_retry(broken, RetryPolicy(), default_is_retryable, sleep=lambda s: pytest.fail("slept"))

    def test_unexpected_exceptions_are_not_retried(self):
        def broken():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            call_with_retry(broken, RetryPolicy(), default_is_retryable, sleep=lambda s: pytest.fail("slept"))

    def test_last_error_propagates_when_attempts_run_out(self):
        delays = []

        def always_busy():
            raise ProviderError("busy", retryable=True)

        with pytest.raises(ProviderError):
            call_with_retry(always_busy, RetryPolicy(max_attempts=2), default_is_retryable, sleep=delays.append)
        assert delays == [1.0]
