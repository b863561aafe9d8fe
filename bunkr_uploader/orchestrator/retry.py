"""Retry/backoff policy for upload attempts."""
from dataclasses import dataclass
from typing import Union

from ..errors import ErrorKind


@dataclass(frozen=True)
class Retry:
    delay: float


class _GiveUp:
    def __repr__(self) -> str:
        return "GIVE_UP"


GIVE_UP = _GiveUp()

Decision = Union[Retry, _GiveUp]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Pure decision function over (attempt, error kind).

    ``attempt`` is the 1-based number of the attempt that just failed.
    Transient failures are retried ``max_retries`` times with the delay
    doubling from ``base_delay`` and capped at ``max_delay``. Anything
    else gives up immediately.
    """
    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    def decide(self, attempt: int, kind: ErrorKind) -> Decision:
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1, got {attempt}")
        if kind != ErrorKind.TRANSIENT:
            return GIVE_UP
        if attempt > self.max_retries:
            return GIVE_UP
        return Retry(self.delay_for(attempt))

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(
            max_retries=config.max_retries,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
        )
