"""
Retry decorator for coroutines
"""
import asyncio
import random
from functools import wraps
from typing import Any, Callable, Optional


def retry_with_backoff(
    should_retry: Callable[[BaseException], bool] = lambda exc: True,
    tries: int = 5,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: bool = True,
    logger: Optional[Any] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator to retry a coroutine function with exponential backoff.

    Args:
        should_retry: Predicate selecting the exceptions worth retrying
        tries: Total number of attempts
        base_delay: Delay before the second attempt, doubled afterwards
        max_delay: Upper bound for a single delay
        jitter: Whether to add random jitter to delay
        logger: Optional logger for retry and exhaustion messages
    """
    def _decorate(func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(func)
        async def _wrapped(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            delay = base_delay
            while True:
                try:
                    return await func(*args, **kwargs)
                except Exception as exc:
                    attempt += 1
                    if not should_retry(exc):
                        raise
                    if attempt >= tries:
                        if logger:
                            logger.error("Retries exhausted for %s: %s", _wrapped.__name__, exc)
                        raise
                    sleep_for = min(delay, max_delay)
                    if jitter:
                        sleep_for += random.uniform(0, sleep_for / 2.0)
                    if logger:
                        logger.warning(
                            "Retrying %s in %.2fs (attempt %d/%d) due to: %s",
                            _wrapped.__name__, sleep_for, attempt, tries, exc
                        )
                    await asyncio.sleep(sleep_for)
                    delay *= 2.0
        return _wrapped
    return _decorate
