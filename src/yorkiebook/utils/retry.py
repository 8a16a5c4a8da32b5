"""
Bounded retry around a single provider call.

Attempt ``n`` that fails with a retryable error waits ``n * base_delay``
seconds before attempt ``n + 1`` (1s, then 2s with the defaults).
"""

import logging
import time
from typing import Callable, Tuple, Type, TypeVar

from .errors import ProviderTransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0


def call_with_retry(
    func: Callable[[], T],
    *,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    retry_on: Tuple[Type[BaseException], ...] = (ProviderTransientError,),
    sleep: Callable[[float], None] = time.sleep,
    description: str = "provider call",
) -> T:
    """
    Call ``func`` until it succeeds or ``max_attempts`` attempts have failed.

    Args:
        func: Zero-argument callable performing exactly one provider request
        max_attempts: Total number of attempts, including the first
        base_delay: Seconds multiplied by the attempt index between attempts
        retry_on: Exception types that trigger another attempt; anything else
            propagates immediately
        sleep: Sleep function (injected by tests)
        description: Label used in log messages

    Returns:
        Whatever ``func`` returns on the first successful attempt

    Raises:
        The last retryable error once attempts are exhausted, or the first
        non-retryable error.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    attempt = 1
    while True:
        try:
            return func()
        except retry_on as e:
            if attempt >= max_attempts:
                logger.error(f"{description} failed after {attempt} attempts: {e}")
                raise
            delay = attempt * base_delay
            logger.warning(
                f"{description} failed (attempt {attempt}/{max_attempts}): {e}. "
                f"Retrying in {delay:.1f}s"
            )
            sleep(delay)
            attempt += 1
