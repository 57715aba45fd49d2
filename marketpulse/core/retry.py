"""Retry logic wrapper with exponential backoff."""

import time
from functools import wraps
from typing import Any, Callable, Optional, TypeVar, cast

from marketpulse.core.logger import logger

F = TypeVar('F', bound=Callable[..., Any])


def _always(_: BaseException) -> bool:
    return True


def with_retries(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    backoff: float = 1.5,
    retry_if: Callable[[BaseException], bool] = _always,
    label: Optional[str] = None,
) -> Callable[[F], F]:
    """
    A decorator that retries a function upon failure using exponential backoff.

    The wrapped function is attempted at most ``max_retries + 1`` times. The sleep
    happens before each retry, never after the final failed attempt.

    Args:
        max_retries (int): Maximum number of retry attempts.
        initial_delay (float): Delay in seconds before the first retry.
        backoff (float): Multiplier applied to the delay after every retry.
        retry_if (Callable): Predicate deciding whether an exception is retryable.
            Non-retryable exceptions are re-raised immediately.
        label (str | None): Name used in log entries. Defaults to the function name.

    Returns:
        Callable: The decorated function.
    """
    def decorator(func: F) -> F:
        name = label or func.__name__

        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if not retry_if(e):
                        logger.error(
                            f"retry: not retryable label={name} attempts={attempt + 1} "
                            f"status={_status_of(e)} | {e}"
                        )
                        raise
                    if attempt == max_retries:
                        logger.error(
                            f"retry: giving up label={name} attempts={attempt + 1} "
                            f"status={_status_of(e)} | {e}"
                        )
                        raise

                    logger.warning(
                        f"retry: attempt failed label={name} attempt={attempt + 1}/{max_retries + 1} "
                        f"status={_status_of(e)} delay_ms={int(delay * 1000)} | {e}"
                    )
                    time.sleep(delay)
                    delay *= backoff

            return None  # Should not be reached due to raise
        return cast(F, wrapper)
    return decorator


def _status_of(exc: BaseException) -> Any:
    """Return the HTTP status attached to an exception, or ``-`` when there is none."""
    response = getattr(exc, "response", None)
    return getattr(response, "status_code", None) or "-"
