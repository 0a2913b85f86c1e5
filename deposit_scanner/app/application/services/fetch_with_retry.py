from __future__ import annotations

import asyncio
import enum
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from deposit_scanner.app.domain.errors import PermanentLedgerError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class FetchStatus(enum.Enum):
    SUCCESS = "success"
    TRANSIENTLY_EXHAUSTED = "transiently_exhausted"
    PERMANENT = "permanent"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    max_attempts=None retries forever (never gives up on transient errors).
    """

    max_attempts: int | None = 10
    base_delay: float = 0.5
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1 (or None for unbounded)")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    def delay_for(self, attempt: int) -> float:
        """Sleep before retry number `attempt` (1-based)."""
        delay = min(self.base_delay * self.multiplier ** (attempt - 1), self.max_delay)
        if self.jitter:
            delay += random.uniform(0, self.jitter)
        return delay


@dataclass(frozen=True)
class FetchOutcome(Generic[T]):
    status: FetchStatus
    attempts: int
    value: T | None = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.status is FetchStatus.SUCCESS


async def fetch_with_retry(
    call: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    description: str = "rpc call",
) -> FetchOutcome[T]:
    """
    Await `call()` until it succeeds or the policy gives up.

    - PermanentLedgerError stops immediately with FetchStatus.PERMANENT.
    - Any other exception is treated as transient and retried after backoff.
    - Cancellation is never swallowed.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            value = await call()
        except PermanentLedgerError as exc:
            logger.error("%s failed permanently: %s", description, exc)
            return FetchOutcome(status=FetchStatus.PERMANENT, attempts=attempt, error=exc)
        except Exception as exc:
            if policy.max_attempts is not None and attempt >= policy.max_attempts:
                logger.error(
                    "%s gave up after %s attempts: %s",
                    description,
                    attempt,
                    exc,
                )
                return FetchOutcome(
                    status=FetchStatus.TRANSIENTLY_EXHAUSTED,
                    attempts=attempt,
                    error=exc,
                )

            delay = policy.delay_for(attempt)
            logger.warning(
                "%s failed (attempt %s), retrying in %.2fs: %s",
                description,
                attempt,
                delay,
                str(exc)[:200],
            )
            await asyncio.sleep(delay)
            continue

        return FetchOutcome(status=FetchStatus.SUCCESS, attempts=attempt, value=value)
