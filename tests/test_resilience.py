"""
Tests for retry, rate limiting and the circuit breaker.
"""

from unittest.mock import Mock, patch

import pytest

from careerpulse.errors import MailProviderError
from careerpulse.resilience import CircuitBreaker, RateLimiter, RetryError, retry_with_backoff


def test_retry_succeeds_after_transient_failures():
    func = Mock(side_effect=[MailProviderError("503", retryable=True), "ok"], __name__="fetch")
    on_retry = Mock()
    wrapped = retry_with_backoff(max_retries=2, base_delay=0, on_retry=on_retry)(func)

    assert wrapped() == "ok"
    assert func.call_count == 2
    on_retry.assert_called_once()


def test_retry_exhausted_raises_retry_error():
    error = MailProviderError("429", retryable=True)
    func = Mock(side_effect=error, __name__="fetch")

    with pytest.raises(RetryError) as exc_info:
        retry_with_backoff(max_retries=2, base_delay=0)(func)()

    assert exc_info.value.last_exception is error
    assert func.call_count == 3


def test_should_retry_rejects_permanent_errors():
    error = MailProviderError("400", retryable=False)
    func = Mock(side_effect=error, __name__="fetch")
    wrapped = retry_with_backoff(
        max_retries=3, base_delay=0, should_retry=lambda e: e.retryable
    )(func)

    with pytest.raises(MailProviderError):
        wrapped()

    assert func.call_count == 1


def test_non_retryable_exception_type_propagates():
    func = Mock(side_effect=KeyError("x"), __name__="fetch")

    with pytest.raises(KeyError):
        retry_with_backoff(max_retries=3, retryable_exceptions=(MailProviderError,))(func)()

    assert func.call_count == 1


def test_backoff_delays_grow_and_are_capped():
    func = Mock(side_effect=MailProviderError("503", retryable=True), __name__="fetch")

    with patch("careerpulse.resilience.time.sleep") as sleep:
        with pytest.raises(RetryError):
            retry_with_backoff(max_retries=3, base_delay=1, max_delay=3, jitter=False)(func)()

    assert [c.args[0] for c in sleep.call_args_list] == [1, 2, 3]


def test_rate_limiter_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        RateLimiter(0)


def test_rate_limiter_times_out_when_spacing_not_met():
    limiter = RateLimiter(calls_per_minute=1)

    assert limiter.acquire(timeout=1) is True
    assert limiter.acquire(timeout=0.05) is False


def test_rate_limiter_allows_calls_at_high_rate():
    limiter = RateLimiter(calls_per_minute=60000)

    assert all(limiter.acquire(timeout=1) for _ in range(5))


class _Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_circuit_opens_after_threshold_and_recovers():
    clock = _Clock()
    breaker = CircuitBreaker(failure_threshold=3, recovery_timeout=30, clock=clock)

    for _ in range(3):
        assert breaker.allow_request()
        breaker.record_failure()

    assert breaker.state == CircuitBreaker.OPEN
    assert not breaker.allow_request()

    clock.now = 31
    assert breaker.state == CircuitBreaker.HALF_OPEN
    breaker.record_success()
    assert breaker.state == CircuitBreaker.CLOSED


def test_failure_in_half_open_reopens():
    clock = _Clock()
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=10, clock=clock)
    breaker.record_failure()

    clock.now = 11
    assert breaker.allow_request()
    breaker.record_failure()

    assert breaker.state == CircuitBreaker.OPEN


def test_success_resets_failure_count():
    breaker = CircuitBreaker(failure_threshold=2)
    breaker.record_failure()
    breaker.record_success()
    breaker.record_failure()

    assert breaker.state == CircuitBreaker.CLOSED
