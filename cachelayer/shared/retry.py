"""
Retry combinator with configurable backoff.

Runs an argument-less async operation until it succeeds or the retry budget is
spent, sleeping between attempts according to a delay policy. A hook may
inspect each failure and either supply a replacement value (ending the loop),
raise to abort, or return None to let the next attempt proceed.
"""

import asyncio
import inspect
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from cachelayer.domain.exceptions import ConfigurationError
from cachelayer.domain.models import Override

logger = logging.getLogger(__name__)

T = TypeVar("T")

DelayPolicy = float | Callable[[int], float]
RetryHook = Callable[[Exception, int], Override[Any] | None | Awaitable[Override[Any] | None]]


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """Result of a retry run.

    Attributes:
        value: Value produced by the operation or supplied by the retry hook
        attempts: Number of times the operation was invoked
        overridden: True if the value came from the retry hook
    """

    value: T
    attempts: int
    overridden: bool = False


def exponential_delay(
    initial_delay: float = 1.0,
    exponential_base: float = 2.0,
    max_delay: float = 60.0,
) -> Callable[[int], float]:
    """
    Build an exponential backoff delay policy.

    Args:
        initial_delay: Delay in seconds before the first retry (default: 1.0)
        exponential_base: Base for exponential backoff calculation (default: 2.0)
        max_delay: Maximum delay in seconds between retries (default: 60.0)

    Returns:
        Policy mapping the 1-based retry attempt to a delay in seconds

    Example:
        >>> policy = exponential_delay(initial_delay=0.5)
        >>> [policy(n) for n in (1, 2, 3)]
        [0.5, 1.0, 2.0]
    """

    def policy(attempt: int) -> float:
        return min(initial_delay * (exponential_base ** (attempt - 1)), max_delay)

    return policy


def resolve_delay(delay: DelayPolicy, attempt: int) -> float:
    """
    Compute the delay before the given retry attempt.

    Raises:
        ConfigurationError: If the policy yields a non-numeric, non-finite or
            negative delay
    """
    value = delay(attempt) if callable(delay) else delay
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"Retry delay must be a number, got {value!r}")
    if not math.isfinite(value) or value < 0:
        raise ConfigurationError(f"Retry delay must be finite and non-negative, got {value!r}")
    return float(value)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 0,
    delay: DelayPolicy = 0.0,
    on_retry: RetryHook | None = None,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    label: str = "operation",
) -> RetryOutcome[T]:
    """
    Invoke ``operation`` with retries.

    The operation is called once, then up to ``max_retries`` more times while it
    keeps failing. Attempts are strictly sequential: the next one starts only
    after the previous one has settled and the delay has elapsed.

    Args:
        operation: Argument-less factory returning a fresh awaitable per call
        max_retries: Maximum number of retries after the first attempt
        delay: Seconds to wait before each retry, or a policy of the retry number
        on_retry: Hook called as ``on_retry(error, attempt)`` before each retry;
            returning an ``Override`` ends the loop with its value, raising aborts
        exceptions: Exception types that trigger a retry (others propagate;
            ConfigurationError always propagates)
        label: Name used in log messages

    Returns:
        RetryOutcome with the produced value and attempt count

    Raises:
        ConfigurationError: If the delay policy produces an invalid delay, or
            raised by the operation itself (never retried)
        Exception: The last failure once retries are exhausted, or whatever the
            retry hook raised
    """
    if max_retries < 0:
        raise ConfigurationError(f"max_retries must be >= 0, got {max_retries}")

    attempt = 0
    while True:
        try:
            value = await operation()
            return RetryOutcome(value=value, attempts=attempt + 1)
        except ConfigurationError:
            raise
        except exceptions as e:
            if attempt >= max_retries:
                if max_retries:
                    logger.error(f"{label} failed after {max_retries} retries: {e}")
                raise

            attempt += 1

            if on_retry is not None:
                override = on_retry(e, attempt)
                if inspect.isawaitable(override):
                    override = await override
                if isinstance(override, Override):
                    logger.info(f"{label} retry {attempt} overridden by hook")
                    return RetryOutcome(value=override.value, attempts=attempt, overridden=True)
                if override is not None:
                    raise ConfigurationError(
                        f"Retry hook must return Override or None, got {type(override).__name__}"
                    ) from e

            wait = resolve_delay(delay, attempt)
            logger.warning(
                f"{label} attempt {attempt}/{max_retries + 1} failed: {e}. "
                f"Retrying in {wait:.2f}s..."
            )
            await asyncio.sleep(wait)
