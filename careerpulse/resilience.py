"""
Resilience utilities for CareerPulse.

Retry with exponential backoff for the mail fetch, a sliding-window rate
limiter for Gmail and inference calls, and a circuit breaker that stops
calling an inference service that keeps failing.
"""

import time
import random
import functools
import threading
from typing import Callable, Optional, Type, Tuple
from collections import deque

from careerpulse.logging_config import get_logger

logger = get_logger(__name__)


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""

    def __init__(self, message: str, last_exception: Optional[Exception] = None):
        super().__init__(message)
        self.last_exception = last_exception


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
    should_retry: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
):
    """
    Decorator for retry with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        exponential_base: Base for exponential calculation
        jitter: Add random jitter to prevent thundering herd
        retryable_exceptions: Tuple of exceptions to retry on
        should_retry: Optional predicate; an exception it rejects is re-raised at once
        on_retry: Optional callback called on each retry (exception, attempt)

    Raises:
        RetryError: When every attempt failed with a retryable exception

    Usage:
        @retry_with_backoff(max_retries=2, retryable_exceptions=(MailProviderError,))
        def list_messages():
            ...
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    last_exception = e

                    if attempt == max_retries:
                        logger.error(
                            f"All {max_retries} retries exhausted for {func.__name__}: {e}"
                        )
                        raise RetryError(
                            f"Failed after {max_retries} retries: {e}", last_exception=e
                        ) from e

                    delay = min(base_delay * (exponential_base**attempt), max_delay)

                    # +/-25% jitter
                    if jitter:
                        delay = delay * (0.75 + random.random() * 0.5)

                    logger.warning(
                        f"Retry {attempt + 1}/{max_retries} for {func.__name__} "
                        f"after {delay:.2f}s delay. Error: {e}"
                    )

                    if on_retry:
                        on_retry(e, attempt + 1)

                    time.sleep(delay)

            raise RetryError(f"Failed after {max_retries} retries", last_exception=last_exception)

        return wrapper

    return decorator


class RateLimiter:
    """
    Sliding window rate limiter for API calls.

    At most ``calls_per_minute`` calls are let through in any 60 second
    window, spaced at least ``60 / calls_per_minute`` seconds apart.
    """

    def __init__(self, calls_per_minute: int = 60):
        if calls_per_minute <= 0:
            raise ValueError("calls_per_minute must be positive")
        self.calls_per_minute = calls_per_minute
        self.min_interval = 60.0 / calls_per_minute

        self._lock = threading.Lock()
        self._call_times: deque = deque(maxlen=calls_per_minute)
        self._last_call: Optional[float] = None

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        Acquire permission to make a call, blocking if necessary.

        Args:
            timeout: Maximum time to wait in seconds (None for infinite)

        Returns:
            True if acquired, False if timeout exceeded
        """
        start_time = time.monotonic()

        while True:
            with self._lock:
                now = time.monotonic()

                while self._call_times and self._call_times[0] < now - 60:
                    self._call_times.popleft()

                window_open = len(self._call_times) < self.calls_per_minute
                spaced = self._last_call is None or (now - self._last_call) >= self.min_interval
                if window_open and spaced:
                    self._call_times.append(now)
                    self._last_call = now
                    return True

                wait_for_window = 0.0
                if not window_open and self._call_times:
                    wait_for_window = max(0.0, self._call_times[0] + 60 - now)
                wait_for_interval = 0.0
                if self._last_call is not None:
                    wait_for_interval = max(0.0, self._last_call + self.min_interval - now)
                wait_time = max(wait_for_window, wait_for_interval)

            if timeout is not None and time.monotonic() - start_time + wait_time > timeout:
                return False

            time.sleep(min(wait_time, 0.1) if wait_time > 0 else 0.01)

    def __call__(self, func: Callable) -> Callable:
        """Use as decorator."""

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            self.acquire()
            return func(*args, **kwargs)

        return wrapper


class CircuitBreaker:
    """
    Circuit breaker pattern for failing fast on repeated errors.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: Circuit is broken, requests are refused
    - HALF_OPEN: Recovery timeout elapsed, trial requests pass through
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 30.0,
        success_threshold: int = 1,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Consecutive failures before opening circuit
            recovery_timeout: Seconds before attempting recovery
            success_threshold: Successes in half-open state needed to close circuit
            clock: Monotonic time source
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.success_threshold = success_threshold
        self._clock = clock

        self._state = self.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        with self._lock:
            if self._state == self.OPEN and self._opened_at is not None:
                if self._clock() - self._opened_at >= self.recovery_timeout:
                    self._state = self.HALF_OPEN
                    self._success_count = 0
            return self._state

    def allow_request(self) -> bool:
        """True unless the circuit is open."""
        return self.state != self.OPEN

    def record_success(self):
        with self._lock:
            if self._state == self.HALF_OPEN:
                self._success_count += 1
                if self._success_count >= self.success_threshold:
                    self._state = self.CLOSED
                    self._failure_count = 0
                    logger.info("Circuit breaker closed after successful recovery")
            elif self._state == self.CLOSED:
                self._failure_count = 0

    def record_failure(self):
        with self._lock:
            self._failure_count += 1

            if self._state == self.HALF_OPEN:
                self._state = self.OPEN
                self._opened_at = self._clock()
                logger.warning("Circuit breaker re-opened after failure in half-open state")
            elif self._state == self.CLOSED and self._failure_count >= self.failure_threshold:
                self._state = self.OPEN
                self._opened_at = self._clock()
                logger.warning(f"Circuit breaker opened after {self._failure_count} failures")
