"""
Retry mechanism for resilient operations.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, Tuple, TypeVar

from shared.logging import get_logger

T = TypeVar("T")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self,
                 max_retries: int = 2,
                 base_delay: float = 1.0,
                 max_delay: float = 60.0,
                 exponential_base: float = 2.0):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


class RetryError(Exception):
    """Exception raised when all retry attempts are exhausted."""
    def __init__(self, message: str, last_exception: Exception, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def calculate_delay(attempt_index: int, config: RetryConfig) -> float:
    """Delay to wait after the 0-indexed attempt ``attempt_index`` fails.

    Exponential and deterministic: ``base_delay * exponential_base ** i``,
    capped at ``max_delay``.
    """
    delay = config.base_delay * (config.exponential_base ** attempt_index)
    return max(0.0, min(delay, config.max_delay))


async def retry_async(operation: Callable[[], Awaitable[T]],
                      should_retry: Callable[[T], bool],
                      config: RetryConfig,
                      *,
                      name: str = "operation",
                      sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> Tuple[T, int]:
    """Run ``operation`` until it yields a result ``should_retry`` rejects.

    Results (not exceptions) drive the loop: the operation is expected to
    classify its own failures. Returns the final result and the number of
    attempts made. The backoff sleep is an ordinary await, so cancelling the
    caller cancels the wait.
    """
    logger = get_logger(f"retry.{name}")

    result: Optional[T] = None
    for attempt in range(config.max_attempts):
        result = await operation()

        if not should_retry(result):
            if attempt > 0:
                logger.info("Retry succeeded", attempt=attempt + 1, operation=name)
            return result, attempt + 1

        if attempt == config.max_attempts - 1:
            logger.error(
                "All retry attempts exhausted",
                attempts=attempt + 1,
                max_attempts=config.max_attempts,
                operation=name,
            )
            break

        delay = calculate_delay(attempt, config)
        logger.warning(
            "Retry attempt failed, waiting before next attempt",
            attempt=attempt + 1,
            delay=delay,
            operation=name,
        )
        await sleep(delay)

    return result, config.max_attempts  # type: ignore[return-value]


def retry_on_exception(exceptions: tuple = (Exception,),
                       config: Optional[RetryConfig] = None) -> Callable:
    """Decorator for retrying async functions on exceptions."""

    if config is None:
        config = RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        async def wrapper(*args, **kwargs) -> Any:
            logger = get_logger(f"retry.{func.__name__}")

            for attempt in range(config.max_attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == config.max_attempts - 1:
                        logger.error(
                            "All retry attempts exhausted",
                            attempts=attempt + 1,
                            function=func.__name__,
                            error=str(e)
                        )
                        raise RetryError(
                            f"Function {func.__name__} failed after {config.max_attempts} attempts",
                            last_exception=e,
                            attempts=config.max_attempts
                        )

                    delay = calculate_delay(attempt, config)
                    logger.warning(
                        "Retry attempt failed, waiting before next attempt",
                        attempt=attempt + 1,
                        delay=delay,
                        function=func.__name__,
                        error=str(e)
                    )
                    await asyncio.sleep(delay)

        return wrapper

    return decorator
