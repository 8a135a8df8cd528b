"""
Retry with exponential backoff for calls to external systems.

The executor is transport-agnostic: it wraps any zero-argument coroutine
factory and decides from the raised exception whether another attempt is
worthwhile. Malformed requests and authentication failures are terminal,
everything else (network errors, timeouts, 5xx) is retried.
"""

from typing import Any, Awaitable, Callable, Optional, TypeVar
from dataclasses import dataclass
import asyncio
import logging

from core.config import Settings
from core.exceptions import ConfigurationError, NonRetryableError, RateLimitError, RetryExhaustedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# HTTP statuses that never succeed on a second try
TERMINAL_STATUS_CODES = frozenset({400, 401, 403})


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt cap and backoff curve. Delays are in seconds."""
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 10.0
    backoff_factor: float = 2.0

    @classmethod
    def from_settings(cls, config: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=config.RETRY_MAX_ATTEMPTS,
            initial_delay=config.RETRY_INITIAL_DELAY_MS / 1000.0,
            max_delay=config.RETRY_MAX_DELAY_MS / 1000.0,
            backoff_factor=config.RETRY_BACKOFF_FACTOR,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return min(self.initial_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)


def is_retryable(error: Exception) -> bool:
    """
    Classify an exception raised by an external call.

    Our own hierarchy is checked first; raw transport errors that carry an
    HTTP response (e.g. ``httpx.HTTPStatusError``) are classified by status.
    """
    if isinstance(error, (NonRetryableError, ConfigurationError)):
        return False
    response = getattr(error, "response", None)
    status_code = getattr(response, "status_code", None)
    if status_code in TERMINAL_STATUS_CODES:
        return False
    return True


class RetryExecutor:
    """
    Runs an operation up to ``policy.max_attempts`` times.

    The sleep function is injectable so tests can record delays instead of
    waiting. Sleeping suspends only the calling task.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    def _delay(self, attempt: int, error: Exception) -> float:
        delay = self.policy.delay_for(attempt)
        if isinstance(error, RateLimitError) and error.retry_after:
            delay = min(max(delay, float(error.retry_after)), self.policy.max_delay)
        return delay

    async def run(self, operation: Callable[[], Awaitable[T]], label: str) -> T:
        """
        Execute ``operation`` with retries.

        Raises:
            The original exception for terminal errors
            RetryExhaustedError: When every attempt failed
        """
        max_attempts = self.policy.max_attempts
        last_error = None

        for attempt in range(1, max_attempts + 1):
            try:
                return await operation()
            except Exception as e:
                if not is_retryable(e):
                    logger.error(f"{label} failed with non-retryable error: {e}")
                    raise

                last_error = e
                if attempt < max_attempts:
                    delay = self._delay(attempt, e)
                    logger.warning(
                        f"{label} failed (attempt {attempt}/{max_attempts}), "
                        f"retrying in {delay:.2f}s: {e}"
                    )
                    await self._sleep(delay)

        logger.error(f"{label} failed after {max_attempts} attempts: {last_error}")
        raise RetryExhaustedError(label, max_attempts, last_error)

