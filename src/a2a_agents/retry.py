"""Bounded exponential backoff for remote agent calls.

Only ``RemoteCallError``s whose ``retryable`` flag is set are retried. Every
failed attempt is reported to a RetryObserver and recorded in an attempt log
that is attached to the final error.

Example:
    >>> policy = RetryPolicy(retries=3, min_delay=1.0, max_delay=10.0, factor=2.0)
    >>> [policy.delay_for(n) for n in (1, 2, 3, 4, 5)]
    [1.0, 2.0, 4.0, 8.0, 10.0]
"""
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, TypeVar

from .errors import RemoteCallError

logger = logging.getLogger("a2a_agents.retry")

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters.

    Attributes:
        retries: Retries after the first attempt (3 means up to 4 attempts)
        min_delay: Delay after the first failed attempt, in seconds
        max_delay: Upper bound for any single delay, in seconds
        factor: Multiplier between consecutive delays
        jitter: Randomize each delay within [delay / 2, delay]
    """
    retries: int = 3
    min_delay: float = 1.0
    max_delay: float = 10.0
    factor: float = 2.0
    jitter: bool = False

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number ``attempt`` (1-based)."""
        delay = min(self.max_delay, self.min_delay * self.factor ** (attempt - 1))
        if self.jitter:
            delay = random.uniform(delay / 2, delay)
        return delay


@dataclass(frozen=True)
class RetryAttempt:
    """One failed attempt."""
    attempt: int
    kind: str
    reason: str
    delay: Optional[float] = None   # None when no retry follows
    status_code: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attempt": self.attempt,
            "kind": self.kind,
            "reason": self.reason,
            "delay": self.delay,
            "status_code": self.status_code,
        }


class RetryObserver(Protocol):
    def on_attempt_failed(self, attempt: RetryAttempt) -> None:
        ...


class LoggingRetryObserver:
    """Logs each failed attempt as a warning."""

    def __init__(self, log: Optional[logging.Logger | logging.LoggerAdapter] = None) -> None:
        self._log = log or logger

    def on_attempt_failed(self, attempt: RetryAttempt) -> None:
        if attempt.delay is None:
            self._log.warning("Attempt %d failed (%s): %s", attempt.attempt, attempt.kind, attempt.reason)
        else:
            self._log.warning(
                "Attempt %d failed (%s), retrying in %.2fs: %s",
                attempt.attempt, attempt.kind, attempt.delay, attempt.reason
            )


def retry_call(
    fn: Callable[[int], T],
    policy: RetryPolicy,
    observer: Optional[RetryObserver] = None,
    deadline: Optional[float] = None,
    sleep: Callable[[float], None] = time.sleep
) -> T:
    """Call ``fn(attempt)`` until it succeeds or retries run out.

    Args:
        fn: Operation to run; receives the 1-based attempt number
        policy: Backoff parameters
        observer: Notified of every failed attempt (default: logs a warning)
        deadline: Absolute ``time.monotonic()`` deadline, or None
        sleep: Sleep function (injectable for tests)

    Returns:
        Whatever ``fn`` returns on its first success

    Raises:
        RemoteCallError: The last error, with the attempt log in
            ``details["attempts"]`` and ``.attempts``. If the next backoff
            would pass ``deadline``, a timeout-class error is raised instead
            without sleeping.
    """
    observer = observer or LoggingRetryObserver()
    attempts: List[RetryAttempt] = []
    attempt = 0
    while True:
        attempt += 1
        try:
            return fn(attempt)
        except RemoteCallError as e:
            will_retry = e.retryable and attempt < policy.max_attempts
            delay = policy.delay_for(attempt) if will_retry else None
            record = RetryAttempt(
                attempt=attempt,
                kind=e.kind,
                reason=e.message,
                delay=delay,
                status_code=e.status_code,
            )
            attempts.append(record)
            observer.on_attempt_failed(record)

            if not will_retry:
                raise _with_attempts(e, attempts)

            if deadline is not None and time.monotonic() + delay >= deadline:
                expired = RemoteCallError(
                    f"Deadline would pass before retry {attempt + 1}: {e.message}",
                    kind="timeout",
                    details={"last_kind": e.kind}
                )
                raise _with_attempts(expired, attempts) from e

            sleep(delay)


def _with_attempts(error: RemoteCallError, attempts: List[RetryAttempt]) -> RemoteCallError:
    error.attempts = [a.to_dict() for a in attempts]
    error.details["attempts"] = error.attempts
    return error
