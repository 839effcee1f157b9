"""Retry logic with exponential backoff for remote operations.

This module provides:
- backoff_delays: The capped exponential delay sequence
- retry_with_backoff: Run a callable, retrying on selected exceptions
- run_with_policy: Same, driven by a RetryPolicy from the configuration

The default policy makes a single attempt: a failed remote operation is
reported to the caller straight away.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from filesync.core.config import RetryPolicy

logger = logging.getLogger(__name__)

# Default retry configuration
DEFAULT_MAX_RETRIES = 0
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 60.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0


def backoff_delays(
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
) -> Iterator[float]:
    """Yield an endless sequence of delays, each capped at max_backoff.

    Example:
        1.0, 2.0, 4.0, ... with the defaults
    """
    delay = min(initial_backoff, max_backoff)
    while True:
        yield delay
        delay = min(delay * backoff_multiplier, max_backoff)


def retry_with_backoff(
    func: Callable[[], Any],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Execute a function, retrying with exponential backoff.

    Args:
        func: Function to execute.
        max_retries: Retries after the first attempt (0 = single attempt).
        initial_backoff: First delay in seconds.
        max_backoff: Upper bound for any delay.
        backoff_multiplier: Growth factor between delays.
        retryable_exceptions: Exception types that trigger a retry; anything
            else propagates at once.
        sleep: Sleep function, replaceable in tests.

    Returns:
        Result of the function.

    Raises:
        The exception of the last attempt.
    """
    attempts = max_retries + 1
    delays = backoff_delays(initial_backoff, max_backoff, backoff_multiplier)

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except retryable_exceptions as e:
            if attempt == attempts:
                if max_retries:
                    logger.error("Giving up after %d attempt(s): %s", attempts, e)
                raise
            delay = next(delays)
            logger.warning("Attempt %d/%d failed: %s; retrying in %.1fs", attempt, attempts, e, delay)
            sleep(delay)

    raise AssertionError("unreachable")


def run_with_policy(
    func: Callable[[], Any],
    policy: RetryPolicy,
    retryable_exceptions: tuple[type[Exception], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> Any:
    """Execute a function with the retry settings of a RetryPolicy."""
    return retry_with_backoff(
        func,
        max_retries=policy.max_retries,
        initial_backoff=policy.initial_backoff,
        max_backoff=policy.max_backoff,
        backoff_multiplier=policy.backoff_multiplier,
        retryable_exceptions=retryable_exceptions,
        sleep=sleep,
    )
