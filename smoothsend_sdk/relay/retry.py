"""
Bounded exponential-backoff retry for idempotent relayer operations.

Never wrap ``relay`` or ``relay_batch`` with this: resubmitting a signed
transfer risks a duplicate on-chain action.
"""
import logging
import random
import time
from typing import Callable, Optional, TypeVar

from ..exceptions import RetriesExhaustedError, SmoothSendError

T = TypeVar("T")

logger = logging.getLogger(__name__)


def default_is_retryable(error: BaseException) -> bool:
    """SDK errors decide for themselves; anything else is assumed transient."""
    if isinstance(error, SmoothSendError):
        return error.retryable
    return True


def with_retry(
    operation: Callable[[], T],
    max_attempts: int = 4,
    base_delay: float = 1.0,
    jitter: float = 0.0,
    is_retryable: Optional[Callable[[BaseException], bool]] = None,
    description: str = "operation",
    logger_instance: Optional[logging.Logger] = None
) -> T:
    """
    Run ``operation`` until it succeeds or the attempts run out.

    The delay before attempt k+1 (k counted from 0) is ``base_delay * 2**k``,
    plus up to ``jitter`` (a fraction of the delay) of random extra wait.

    Args:
        operation: Zero-argument callable; a raised exception counts as failure
        max_attempts: Total number of attempts, including the first
        base_delay: Delay in seconds before the second attempt
        jitter: Upper bound of the random extra delay, as a fraction
        is_retryable: Predicate deciding whether an error is worth retrying
        description: Name used in log messages
        logger_instance: Logger to use (defaults to module logger)

    Returns:
        The first successful result

    Raises:
        RetriesExhaustedError: If every attempt failed with a retryable error
        Exception: The first non-retryable error, unchanged
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")

    log = logger_instance or logger
    check = is_retryable or default_is_retryable
    last_error: Optional[BaseException] = None

    for attempt in range(max_attempts):
        if attempt > 0:
            delay = base_delay * (2 ** (attempt - 1))
            if jitter:
                delay += delay * random.uniform(0, jitter)
            log.warning(
                f"Retrying {description} (attempt {attempt + 1}/{max_attempts}) "
                f"in {delay:.2f}s after error: {last_error}"
            )
            time.sleep(delay)

        try:
            return operation()
        except Exception as e:
            if not check(e):
                raise
            last_error = e

    log.error(f"{description} failed after {max_attempts} attempts: {last_error}")
    raise RetriesExhaustedError(last_error, max_attempts) from last_error
