from __future__ import annotations

import pytest

from deposit_scanner.app.application.services.fetch_with_retry import (
    FetchStatus,
    RetryPolicy,
    fetch_with_retry,
)
from deposit_scanner.app.domain.errors import PermanentLedgerError

NO_WAIT = RetryPolicy(max_attempts=10, base_delay=0.0)


class ScriptedCall:
    """Fails `failures` times with `error`, then returns `value`."""

    def __init__(self, failures: int, value: object = "ok", error: Exception | None = None) -> None:
        self.failures = failures
        self.value = value
        self.error = error or TimeoutError("boom")
        self.calls = 0

    async def __call__(self) -> object:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error
        return self.value


@pytest.mark.parametrize("k", [0, 1, 5])
async def test_retries_exactly_k_times_then_returns_value(k: int) -> None:
    call = ScriptedCall(failures=k, value={"block": 1})

    outcome = await fetch_with_retry(call, policy=NO_WAIT)

    assert outcome.status is FetchStatus.SUCCESS
    assert outcome.ok
    assert outcome.value == {"block": 1}
    assert call.calls == k + 1
    assert outcome.attempts == k + 1


async def test_gives_up_after_max_attempts() -> None:
    call = ScriptedCall(failures=100)

    outcome = await fetch_with_retry(call, policy=RetryPolicy(max_attempts=3, base_delay=0.0))

    assert outcome.status is FetchStatus.TRANSIENTLY_EXHAUSTED
    assert not outcome.ok
    assert outcome.value is None
    assert isinstance(outcome.error, TimeoutError)
    assert call.calls == 3


async def test_permanent_error_is_not_retried() -> None:
    call = ScriptedCall(failures=1, error=PermanentLedgerError("invalid params"))

    outcome = await fetch_with_retry(call, policy=NO_WAIT)

    assert outcome.status is FetchStatus.PERMANENT
    assert isinstance(outcome.error, PermanentLedgerError)
    assert call.calls == 1


async def test_unbounded_policy_keeps_retrying() -> None:
    call = ScriptedCall(failures=25)

    outcome = await fetch_with_retry(call, policy=RetryPolicy(max_attempts=None, base_delay=0.0))

    assert outcome.ok
    assert call.calls == 26


def test_backoff_is_exponential_and_capped() -> None:
    policy = RetryPolicy(base_delay=0.5, multiplier=2.0, max_delay=3.0)

    assert [policy.delay_for(n) for n in range(1, 6)] == [0.5, 1.0, 2.0, 3.0, 3.0]


def test_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
