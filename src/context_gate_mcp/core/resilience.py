"""Retry with exponential backoff and jitter.

Used by the persistence layers, which run on worker threads, so the retry
loop is synchronous.
"""

import logging
import random
import time
from typing import Callable, Optional, Sequence, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def compute_backoff_delay(
    attempt: int,
    *,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    rng: Optional[random.Random] = None,
) -> float:
    """Delay before retry number *attempt* (0-based).

    Jitter scales the delay to 50-150% of its nominal value.
    """
    delay = min(base_delay * (exponential_base**attempt), max_delay)
    if jitter:
        jitter_factor = 0.5 + (rng or random).random()  # Range: 0.5 to 1.5
        delay = delay * jitter_factor
    return delay


def retry_with_backoff(
    func: Callable[[], T],
    *,
    max_retries: int = 3,
    base_delay: float = 0.1,
    max_delay: float = 5.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Optional[Sequence[Type[Exception]]] = None,
    rng: Optional[random.Random] = None,
    sleep_func: Optional[Callable[[float], None]] = None,
) -> T:
    """Call *func*, retrying failures with increasing delays.

    Args:
        func: Callable to retry (no arguments; use lambda for args).
        max_retries: Maximum retry attempts after the first call.
        base_delay: Initial delay in seconds.
        max_delay: Maximum delay cap in seconds.
        exponential_base: Multiplier per retry.
        jitter: Add 50-150% randomness to each delay.
        retryable_exceptions: Exceptions to retry on (default: all).
        rng: Injectable Random instance for deterministic testing.
        sleep_func: Injectable sleep function for time control in tests.

    Returns:
        Result from the function on success.

    Raises:
        Exception: The last exception if all retries are exhausted, or
            any non-retryable exception immediately.

    Testing example:
        >>> sleeps = []
        >>> retry_with_backoff(func, rng=random.Random(42), sleep_func=sleeps.append)
    """
    retryable = tuple(retryable_exceptions or [Exception])
    _rng = rng or random.Random()
    _sleep = sleep_func or time.sleep

    for attempt in range(max_retries + 1):
        try:
            return func()
        except retryable as e:
            if attempt == max_retries:
                raise

            delay = compute_backoff_delay(
                attempt,
                base_delay=base_delay,
                max_delay=max_delay,
                exponential_base=exponential_base,
                jitter=jitter,
                rng=_rng,
            )
            logger.debug(
                "Attempt %d/%d failed (%s); retrying in %.3fs",
                attempt + 1,
                max_retries + 1,
                e,
                delay,
            )
            _sleep(delay)

    raise RuntimeError("retry_with_backoff: unexpected state")
