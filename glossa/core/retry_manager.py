"""
Retry manager with exponential backoff.

Recoverable TranslationErrors are retried with exponential backoff and
jitter; a rate-limit error's ``retry_after`` hint is used as a lower bound
for the delay. Non-recoverable errors are re-raised on the first attempt.
"""

import asyncio
import logging
import random
from typing import Optional, Callable, Any
from dataclasses import dataclass
from enum import Enum

from .exceptions import (
    TranslationError,
    LLMRateLimitError,
    RetryExhaustedError,
)

logger = logging.getLogger(__name__)


class RetryStrategy(Enum):
    """Retry strategies."""
    EXPONENTIAL = "exponential"  # Standard exponential backoff
    LINEAR = "linear"  # Linear backoff
    IMMEDIATE = "immediate"  # No delay, retry immediately
    NONE = "none"  # Don't retry


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total number of attempts, including the first one
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        backoff_factor: Multiplier for exponential backoff
        jitter: Add random jitter to delays (0.0-1.0)
        strategy: Retry strategy to use
    """
    max_attempts: int = 4
    initial_delay: float = 1.0
    max_delay: float = 60.0
    backoff_factor: float = 2.0
    jitter: float = 0.1
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL

    @classmethod
    def from_max_retries(cls, max_retries: int, **kwargs) -> 'RetryConfig':
        """Build a config allowing ``max_retries`` retries after the first attempt."""
        return cls(max_attempts=max_retries + 1, **kwargs)


class RetryManager:
    """Runs async callables with retry and backoff."""

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Any] = asyncio.sleep
    ):
        """
        Args:
            config: Retry configuration
            sleep: Awaitable sleep function (injectable for tests)
        """
        self.config = config or RetryConfig()
        self._sleep = sleep

    def calculate_delay(self, attempt: int, error: Optional[Exception] = None) -> float:
        """Calculate delay before the retry that follows ``attempt``."""
        config = self.config

        if config.strategy in (RetryStrategy.IMMEDIATE, RetryStrategy.NONE):
            return 0.0

        if config.strategy == RetryStrategy.LINEAR:
            delay = config.initial_delay * attempt
        else:  # EXPONENTIAL
            delay = config.initial_delay * (config.backoff_factor ** (attempt - 1))

        # Apply max delay cap
        delay = min(delay, config.max_delay)

        # Add jitter
        if config.jitter > 0:
            delay += delay * config.jitter * random.random()

        # Server asked us to wait at least this long
        if isinstance(error, LLMRateLimitError) and error.retry_after:
            delay = max(delay, min(error.retry_after, config.max_delay))

        return delay

    async def execute_with_retry(
        self,
        func: Callable[..., Any],
        *args,
        operation_id: Optional[str] = None,
        on_retry: Optional[Callable[[Exception, int], None]] = None,
        **kwargs
    ) -> Any:
        """Execute a function with retry logic.

        Args:
            func: Async function to execute
            *args: Positional arguments for func
            operation_id: Identifier used in log messages
            on_retry: Callback called before each retry (error, attempt_number)
            **kwargs: Keyword arguments for func

        Returns:
            Result of func

        Raises:
            RetryExhaustedError: If all attempts fail with recoverable errors
            TranslationError: If an error is not recoverable
        """
        op_id = operation_id or getattr(func, '__name__', 'operation')
        attempt = 0

        while True:
            attempt += 1
            try:
                result = await func(*args, **kwargs)
                if attempt > 1:
                    logger.info(f"Operation {op_id} succeeded after {attempt} attempts")
                return result

            except TranslationError as error:
                if not error.recoverable:
                    logger.error(f"Non-recoverable error in {op_id}: {error}")
                    raise

                if self.config.strategy == RetryStrategy.NONE or attempt >= self.config.max_attempts:
                    logger.error(f"Retry exhausted for {op_id} after {attempt} attempts: {error}")
                    raise RetryExhaustedError(
                        f"Maximum retry attempts ({self.config.max_attempts}) exceeded",
                        original_error=error,
                        attempts=attempt
                    ) from error

                delay = self.calculate_delay(attempt, error)
                logger.warning(
                    f"Attempt {attempt}/{self.config.max_attempts} failed for {op_id}: "
                    f"{type(error).__name__}: {error.message}. Retrying in {delay:.2f}s..."
                )

                if on_retry:
                    on_retry(error, attempt)

                if delay > 0:
                    await self._sleep(delay)
