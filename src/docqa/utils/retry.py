from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, TypeVar

from docqa.domain.errors import DeadlineExceeded, ProviderRejected, ProviderUnavailable
from docqa.domain.models import ProviderFailure, ProviderResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Bounded exponential backoff: initial, initial*multiplier, ... capped at max_backoff_s.
    """
    max_attempts: int = 3
    initial_backoff_s: float = 0.5
    multiplier: float = 2.0
    max_backoff_s: float = 8.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    def backoff(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-based)."""
        return min(self.max_backoff_s, self.initial_backoff_s * (self.multiplier ** (attempt - 1)))


@dataclass(frozen=True, slots=True)
class Deadline:
    """
    Absolute point in (monotonic) time after which work should be abandoned.
    """
    expires_at: float
    clock: Callable[[], float] = field(default=time.monotonic, compare=False)

    @classmethod
    def after(cls, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        return cls(expires_at=clock() + seconds, clock=clock)

    def remaining(self) -> float:
        return max(0.0, self.expires_at - self.clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0


def request_timeout(default: Optional[float], deadline: Optional[Deadline]) -> Optional[float]:
    """Per-request timeout: the configured one, shortened to what the deadline leaves."""
    if deadline is None:
        return default
    remaining = deadline.remaining()
    return remaining if default is None else min(default, remaining)


def call_with_retry(
    call: Callable[[Optional[float]], ProviderResult[T]],
    *,
    policy: RetryPolicy,
    what: str,
    timeout: Optional[float] = None,
    deadline: Optional[Deadline] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """
    Run a provider call under the retry policy and unwrap its result.

    call receives the per-request timeout and returns a ProviderResult.
    Rejected failures raise ProviderRejected at once; retryable failures are
    retried until the attempts (or the deadline) run out, then raise
    ProviderUnavailable.
    """
    last: Optional[ProviderFailure] = None

    for attempt in range(1, policy.max_attempts + 1):
        if deadline is not None and deadline.expired:
            raise DeadlineExceeded(f"{what}: deadline exceeded before attempt {attempt}")

        result = call(request_timeout(timeout, deadline))
        if not isinstance(result, ProviderFailure):
            return result.value

        if not result.retryable:
            raise ProviderRejected(f"{what} rejected: {result.message}", status_code=result.status_code)

        last = result
        if attempt == policy.max_attempts:
            break

        delay = policy.backoff(attempt)
        if deadline is not None and delay >= deadline.remaining():
            raise DeadlineExceeded(f"{what}: deadline exceeded after attempt {attempt}: {result.message}")

        logger.warning(
            "%s failed on attempt %d/%d (%s), backing off %.2fs",
            what, attempt, policy.max_attempts, result.message, delay,
        )
        sleep(delay)

    message = last.message if last is not None else "no attempts made"
    raise ProviderUnavailable(f"{what} unavailable after {policy.max_attempts} attempts: {message}")
