"""Retry helpers with fixed or exponential backoff."""

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Literal, Optional, TypeVar

logger = logging.getLogger(__name__)
T = TypeVar("T")

Backoff = Literal["exponential", "fixed"]


def compute_delay(attempt: int, base_delay: float, backoff: Backoff) -> float:
    """Delay before retrying after the given zero-based attempt."""
    if backoff == "fixed":
        return base_delay
    return base_delay * (2**attempt)


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    backoff: Backoff = "exponential",
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[int, Exception, float], Awaitable[None]]] = None,
    **kwargs: Any,
) -> T:
    """
    Await ``func(*args, **kwargs)`` until it succeeds or attempts run out.

    Args:
        func: Coroutine function to call
        max_attempts: Maximum number of attempts (first call included)
        base_delay: Delay in seconds (doubles each attempt for exponential)
        backoff: "exponential" or "fixed"
        exceptions: Tuple of exception types to catch
        retry_if: Predicate deciding whether a caught exception is retryable
        on_retry: Awaited with (attempt_number, error, delay) before sleeping

    Returns:
        The first successful result

    Raises:
        The last caught exception once attempts are exhausted, or any
        exception the predicate rejects
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last_exception: Exception | None = None

    for attempt in range(max_attempts):
        try:
            return await func(*args, **kwargs)
        except exceptions as e:
            last_exception = e
            if retry_if is not None and not retry_if(e):
                raise
            if attempt < max_attempts - 1:
                delay = compute_delay(attempt, base_delay, backoff)
                logger.warning(
                    f"Attempt {attempt + 1}/{max_attempts} failed: {e}. "
                    f"Retrying in {delay}s..."
                )
                if on_retry is not None:
                    await on_retry(attempt + 1, e, delay)
                await asyncio.sleep(delay)
            else:
                logger.error(f"All {max_attempts} attempts failed: {e}")

    raise last_exception  # type: ignore


def with_retry(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    backoff: Backoff = "exponential",
    retry_if: Optional[Callable[[Exception], bool]] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator form of :func:`retry_async`.

    Args:
        max_attempts: Maximum number of retry attempts
        base_delay: Base delay in seconds (doubles each attempt)
        exceptions: Tuple of exception types to catch
        backoff: "exponential" or "fixed"
        retry_if: Predicate deciding whether a caught exception is retryable

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_async(
                func,
                *args,
                max_attempts=max_attempts,
                base_delay=base_delay,
                backoff=backoff,
                exceptions=exceptions,
                retry_if=retry_if,
                **kwargs,
            )

        return wrapper

    return decorator
