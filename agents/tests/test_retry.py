"""Tests for the provider retry policy."""

from __future__ import annotations

import pytest

from agents.retry import MIN_BACKOFF_SECONDS, RetryPolicy
from simulation.errors import ProviderError, StepFatalError

from conftest import SleepRecorder, run_async


class _FlakyOperation:
    """Fails ``failures`` times, then returns ``"ok"``."""

    def __init__(self, failures: int, retryable: bool = True) -> None:
        self.failures = failures
        self.retryable = retryable
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise ProviderError(f"failure {self.calls}", retryable=self.retryable)
        return "ok"


class TestRetryPolicy:
    def test_first_attempt_success(self):
        sleeper = SleepRecorder()
        outcome = run_async(RetryPolicy(3, 1.0, sleep=sleeper).run(_FlakyOperation(0)))

        assert outcome.ok
        assert outcome.value == "ok"
        assert outcome.attempts == 1
        assert sleeper.delays == []

    def test_recovers_after_transient_failures(self):
        sleeper = SleepRecorder()
        operation = _FlakyOperation(2)
        outcome = run_async(RetryPolicy(3, 1.0, sleep=sleeper).run(operation))

        assert outcome.ok
        assert operation.calls == 3
        assert sleeper.delays == [1.0, 2.0]

    def test_exhaustion_returns_step_fatal_error(self):
        sleeper = SleepRecorder()
        operation = _FlakyOperation(10)
        outcome = run_async(RetryPolicy(2, 0.5, sleep=sleeper).run(operation))

        assert not outcome.ok
        assert outcome.value is None
        assert operation.calls == 3
        assert outcome.attempts == 3
        assert isinstance(outcome.error, StepFatalError)
        assert outcome.error.attempts == 3
        assert isinstance(outcome.error.last_error, ProviderError)
        assert "provider exhausted after 3 attempt(s)" in str(outcome.error)
        assert sleeper.delays == [0.5, 1.0]

    def test_delays_strictly_increase(self):
        sleeper = SleepRecorder()
        run_async(RetryPolicy(5, 0.25, sleep=sleeper).run(_FlakyOperation(10)))

        assert len(sleeper.delays) == 5
        assert all(a < b for a, b in zip(sleeper.delays, sleeper.delays[1:]))

    def test_zero_base_delay_still_backs_off(self):
        policy = RetryPolicy(3, 0.0)

        assert policy.delay_for(0) == MIN_BACKOFF_SECONDS
        assert policy.delay_for(1) > policy.delay_for(0)
        assert policy.delay_for(2) > policy.delay_for(1)

    def test_zero_retries_means_single_attempt(self):
        operation = _FlakyOperation(1)
        outcome = run_async(RetryPolicy(0, 1.0, sleep=SleepRecorder()).run(operation))

        assert not outcome.ok
        assert operation.calls == 1

    def test_non_retryable_error_stops_immediately(self):
        sleeper = SleepRecorder()
        operation = _FlakyOperation(10, retryable=False)
        outcome = run_async(RetryPolicy(3, 1.0, sleep=sleeper).run(operation))

        assert not outcome.ok
        assert operation.calls == 1
        assert sleeper.delays == []

    def test_should_stop_prevents_further_attempts(self):
        operation = _FlakyOperation(10)
        outcome = run_async(
            RetryPolicy(3, 1.0, sleep=SleepRecorder()).run(operation, should_stop=lambda: True)
        )

        assert not outcome.ok
        assert outcome.cancelled
        assert outcome.error is None
        assert operation.calls == 1

    def test_cancellation_wins_over_exhaustion_on_the_last_attempt(self):
        operation = _FlakyOperation(10)
        outcome = run_async(
            RetryPolicy(0, 1.0, sleep=SleepRecorder()).run(operation, should_stop=lambda: True)
        )

        assert outcome.cancelled
        assert outcome.error is None

    def test_exhaustion_is_not_a_cancellation(self):
        outcome = run_async(
            RetryPolicy(1, 1.0, sleep=SleepRecorder()).run(
                _FlakyOperation(10), should_stop=lambda: False
            )
        )

        assert not outcome.cancelled
        assert outcome.error is not None

    def test_other_exceptions_propagate(self):
        async def boom() -> str:
            raise RuntimeError("bug")

        with pytest.raises(RuntimeError):
            run_async(RetryPolicy(3, 1.0, sleep=SleepRecorder()).run(boom))

    def test_negative_retries_rejected(self):
        with pytest.raises(ValueError):
            RetryPolicy(-1, 1.0)
