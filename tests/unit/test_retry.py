"""
Unit tests for retry with exponential backoff
"""

import httpx
import pytest
from core.exceptions import (
    AuthenticationError,
    BadRequestError,
    NetworkError,
    RateLimitError,
    RetryExhaustedError,
    ServerError,
)
from ingestion.retry import RetryExecutor, RetryPolicy, is_retryable


class FlakyOperation:
    """Fails a fixed number of times, then returns a value"""

    def __init__(self, failures, error_factory, result="ok"):
        self.failures = failures
        self.error_factory = error_factory
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return self.result


def _status_error(status_code: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://pms.test/tenants")
    response = httpx.Response(status_code, request=request)
    return httpx.HTTPStatusError("boom", request=request, response=response)


class TestRetryPolicy:

    def test_delay_grows_geometrically(self):
        policy = RetryPolicy(initial_delay=1.0, backoff_factor=2.0, max_delay=10.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [1.0, 2.0, 4.0]

    def test_delay_capped_at_max(self):
        policy = RetryPolicy(initial_delay=1.0, backoff_factor=2.0, max_delay=10.0)
        assert policy.delay_for(8) == 10.0


class TestIsRetryable:

    @pytest.mark.parametrize("status_code", [400, 401, 403])
    def test_terminal_statuses(self, status_code):
        assert is_retryable(_status_error(status_code)) is False

    @pytest.mark.parametrize("status_code", [429, 500, 502, 503])
    def test_transient_statuses(self, status_code):
        assert is_retryable(_status_error(status_code)) is True

    def test_own_hierarchy(self):
        assert is_retryable(NetworkError("timeout")) is True
        assert is_retryable(ServerError("503")) is True
        assert is_retryable(BadRequestError("bad")) is False
        assert is_retryable(AuthenticationError("denied")) is False

    def test_plain_errors_are_retried(self):
        assert is_retryable(ConnectionError("reset")) is True


class TestRetryExecutor:

    @pytest.mark.asyncio
    async def test_succeeds_after_transient_failures(self, retry, recording_sleep):
        operation = FlakyOperation(2, lambda: NetworkError("timeout"))

        result = await retry.run(operation, "PMS getTenants")

        assert result == "ok"
        assert operation.calls == 3
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_first_try_success_does_not_sleep(self, retry, recording_sleep):
        operation = FlakyOperation(0, lambda: NetworkError("never"))

        assert await retry.run(operation, "PMS getTenants") == "ok"
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_terminal_error_is_not_retried(self, retry, recording_sleep):
        operation = FlakyOperation(5, lambda: AuthenticationError("bad key"))

        with pytest.raises(AuthenticationError):
            await retry.run(operation, "PMS getFacilities")

        assert operation.calls == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_terminal_http_status_is_not_retried(self, retry, recording_sleep):
        operation = FlakyOperation(5, lambda: _status_error(400))

        with pytest.raises(httpx.HTTPStatusError):
            await retry.run(operation, "PMS getFacilities")

        assert operation.calls == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_exhaustion_reports_operation_and_attempts(self, retry, recording_sleep):
        operation = FlakyOperation(10, lambda: ServerError("503"))

        with pytest.raises(RetryExhaustedError) as exc_info:
            await retry.run(operation, "Warehouse getLeases")

        error = exc_info.value
        assert error.operation == "Warehouse getLeases"
        assert error.attempts == 3
        assert isinstance(error.last_error, ServerError)
        assert error.message == "Warehouse getLeases failed after 3 attempts"
        assert operation.calls == 3
        assert recording_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after_is_honored(self, recording_sleep):
        executor = RetryExecutor(RetryPolicy(max_attempts=2, max_delay=10.0), sleep=recording_sleep)
        operation = FlakyOperation(1, lambda: RateLimitError("slow down", retry_after=5))

        await executor.run(operation, "PMS getTenants")

        assert recording_sleep.delays == [5.0]

    @pytest.mark.asyncio
    async def test_rate_limit_retry_after_is_capped(self, recording_sleep):
        executor = RetryExecutor(RetryPolicy(max_attempts=2, max_delay=10.0), sleep=recording_sleep)
        operation = FlakyOperation(1, lambda: RateLimitError("slow down", retry_after=120))

        await executor.run(operation, "PMS getTenants")

        assert recording_sleep.delays == [10.0]
