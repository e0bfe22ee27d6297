"""Service for executing upstream API calls with automatic retries.

Implements exponential backoff with jitter for transient errors: rate limits
(429) and server failures (5xx). A server-supplied ``Retry-After`` hint
replaces the computed backoff, up to ``max_retry_after_ms``. Everything else
(other 4xx, programming errors, transport failures without a status)
propagates on the first attempt.
"""

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Awaitable, Callable, Coroutine, Optional

# Infrastructure Layer Imports
from motionkit.infrastructure.resilience.cancellation import CancellationToken, sleep_or_cancel

# Domain Layer Imports
from motionkit.domain.errors import UpstreamHTTPError
from motionkit.domain.events.api_events import (
    ApiCallFailed, ApiCallSucceeded, RetryScheduled, dispatch_event
)

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float, Optional[CancellationToken]], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry/backoff configuration.

    ``max_retries`` is the total number of attempts, so a value of 3 means one
    initial call plus at most two retries.
    """
    max_retries: int = 3
    initial_backoff_ms: float = 1000.0
    backoff_multiplier: float = 2.0
    max_backoff_ms: float = 10000.0
    jitter_fraction: float = 0.1
    max_retry_after_ms: float = 60000.0  # Ceiling on a server-supplied Retry-After

    def __post_init__(self) -> None:
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")
        if self.initial_backoff_ms < 0 or self.max_backoff_ms < 0 or self.max_retry_after_ms < 0:
            raise ValueError("backoff durations must be non-negative")
        if self.backoff_multiplier < 1:
            raise ValueError(f"backoff_multiplier must be >= 1, got {self.backoff_multiplier}")
        if not 0 <= self.jitter_fraction <= 1:
            raise ValueError(f"jitter_fraction must be within [0, 1], got {self.jitter_fraction}")


# --- Failure Classification ---

def extract_status(error: BaseException) -> Optional[int]:
    """Reads an HTTP status from our own errors or from httpx.HTTPStatusError."""
    if isinstance(error, UpstreamHTTPError):
        return error.status
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if isinstance(status, int):
        return status
    status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def parse_retry_after(value: Any) -> Optional[float]:
    """Parses a Retry-After value given in seconds or as an HTTP date."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value) if value >= 0 else None
    text = str(value).strip()
    if not text:
        return None
    try:
        seconds = float(text)
        return seconds if seconds >= 0 else None
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


def extract_retry_after(error: BaseException) -> Optional[float]:
    """Returns the server retry hint in seconds, if the failure carries one."""
    if isinstance(error, UpstreamHTTPError):
        return error.retry_after
    response = getattr(error, "response", None)
    headers = getattr(response, "headers", None)
    if headers is not None:
        return parse_retry_after(headers.get("retry-after"))
    return None


def is_retryable(error: BaseException) -> bool:
    """Rate limits (429) and server failures (5xx) are worth another attempt."""
    status = extract_status(error)
    return status is not None and (status >= 500 or status == 429)


# --- Retry Service ---

class ApiRetryService:
    """Executes one upstream call with bounded retries, backoff and jitter."""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        sleep: SleepFunc = sleep_or_cancel,
        random_fn: Callable[[], float] = random.random,
    ):
        """Initializes the ApiRetryService.

        Args:
            policy: Backoff configuration (defaults to RetryPolicy()).
            sleep: Awaitable sleep taking seconds and an optional cancel token.
            random_fn: Uniform [0, 1) source used for jitter.
        """
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._random = random_fn
        logger.debug(
            f"ApiRetryService initialized: max_retries={self.policy.max_retries}, "
            f"initial_backoff={self.policy.initial_backoff_ms}ms, factor={self.policy.backoff_multiplier}, "
            f"cap={self.policy.max_backoff_ms}ms"
        )

    def compute_backoff_ms(self, attempt: int) -> float:
        """Delay after failed attempt number ``attempt`` (1-based), capped."""
        p = self.policy
        base = p.initial_backoff_ms * (p.backoff_multiplier ** (attempt - 1))
        jitter = base * p.jitter_fraction * self._random()
        return min(base + jitter, p.max_backoff_ms)

    async def execute_with_retry(
        self,
        func: Callable[..., Coroutine[Any, Any, Any]],
        *args: Any,
        endpoint_name: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
        **kwargs: Any
    ) -> Any:
        """Executes an async call, retrying transient upstream failures.

        Args:
            func: The async function (API call) to execute.
            *args: Positional arguments for the function.
            endpoint_name: Label for logs/events (defaults to the function name).
            cancel_token: Checked before each attempt and during each backoff.
            **kwargs: Keyword arguments for the function.

        Returns:
            The result of the first successful attempt.

        Raises:
            OperationCancelledError: If ``cancel_token`` fires.
            Exception: The last failure once attempts are exhausted, or the
                first non-retryable failure.
        """
        max_attempts = self.policy.max_retries
        endpoint = endpoint_name or getattr(func, "__name__", "call")

        for attempt in range(1, max_attempts + 1):
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()

            start_time = time.perf_counter()
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                status = extract_status(e)
                retryable = is_retryable(e)

                if not retryable or attempt == max_attempts:
                    logger.warning(
                        f"Request to {endpoint} failed and will not be retried",
                        extra={"fields": {
                            "endpoint": endpoint, "status": status, "attempt": attempt,
                            "maxRetries": max_attempts, "isRetryable": retryable, "error": str(e),
                        }},
                    )
                    dispatch_event(ApiCallFailed(
                        endpoint=endpoint, attempts=attempt, error_type=type(e).__name__,
                        error_message=str(e), status=status,
                    ))
                    raise

                retry_after = extract_retry_after(e)
                if retry_after is not None:
                    delay_ms = min(retry_after * 1000, self.policy.max_retry_after_ms)
                else:
                    delay_ms = self.compute_backoff_ms(attempt)

                logger.info(
                    f"Request to {endpoint} failed, retrying in {delay_ms:.0f}ms",
                    extra={"fields": {
                        "endpoint": endpoint, "attempt": attempt, "maxRetries": max_attempts,
                        "delayMs": round(delay_ms), "status": status, "error": str(e),
                        "fromRetryAfter": retry_after is not None,
                    }},
                )
                dispatch_event(RetryScheduled(
                    endpoint=endpoint, attempt_number=attempt, delay_ms=delay_ms,
                    status=status, from_retry_after=retry_after is not None,
                ))
                await self._sleep(delay_ms / 1000, cancel_token)
                continue

            latency_ms = (time.perf_counter() - start_time) * 1000
            dispatch_event(ApiCallSucceeded(endpoint=endpoint, attempts=attempt, latency_ms=latency_ms))
            return result

        raise RuntimeError("retry loop exited without a result")
