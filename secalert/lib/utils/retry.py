from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterator, Optional, Tuple, Type, TypeVar

T = TypeVar("T")

RetryPredicate = Callable[[BaseException], bool]


@dataclass(frozen=True)
class Backoff:
    """Exponential backoff schedule with multiplicative jitter (0.2 => +/-20%)."""

    attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 5.0
    jitter: float = 0.2

    def delays(self) -> Iterator[float]:
        """Yield the pause before each retry; one fewer value than attempts."""
        delay = self.base_delay
        for _ in range(max(1, self.attempts) - 1):
            factor = random.uniform(1 - self.jitter, 1 + self.jitter) if self.jitter > 0 else 1.0
            yield delay * factor
            delay = min(self.max_delay, delay * 2)


def should_retry(exc: BaseException, predicate: Optional[RetryPredicate] = None) -> bool:
    """Use ``predicate`` when given, else the exception's ``retryable`` flag (default True)."""
    if predicate is not None:
        return bool(predicate(exc))
    return bool(getattr(exc, "retryable", True))


def with_retry(
    operation: Callable[[], T],
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    logger=None,
    description: Optional[str] = None,
    jitter: float = 0.2,
    is_retryable: Optional[RetryPredicate] = None,
) -> T:
    """
    Call ``operation`` until it succeeds, backing off between attempts.

    Only ``exceptions`` are caught; anything the predicate (or the exception's
    ``retryable`` attribute) marks as permanent is re-raised immediately, as is
    the last failure once the attempts are spent.
    """
    desc = description or getattr(operation, "__name__", "operation")
    schedule = Backoff(attempts, base_delay, max_delay, jitter)
    pauses = schedule.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except exceptions as exc:  # type: ignore[misc]
            pause = next(pauses, None)
            if pause is None or not should_retry(exc, is_retryable):
                raise
            _log_retry(logger, desc, exc, attempt, schedule.attempts)
            time.sleep(pause)


async def with_retry_async(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 0.5,
    max_delay: float = 5.0,
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    logger=None,
    description: Optional[str] = None,
    jitter: float = 0.2,
    is_retryable: Optional[RetryPredicate] = None,
) -> T:
    """Coroutine counterpart of :func:`with_retry`; pauses with ``asyncio.sleep``."""
    desc = description or getattr(operation, "__name__", "operation")
    schedule = Backoff(attempts, base_delay, max_delay, jitter)
    pauses = schedule.delays()
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation()
        except exceptions as exc:  # type: ignore[misc]
            pause = next(pauses, None)
            if pause is None or not should_retry(exc, is_retryable):
                raise
            _log_retry(logger, desc, exc, attempt, schedule.attempts)
            await asyncio.sleep(pause)


def _log_retry(logger, desc: str, exc: BaseException, attempt: int, attempts: int) -> None:
    if logger is not None:
        logger.warning("Retrying %s after %s (attempt %s/%s)", desc, exc, attempt, max(1, attempts))
