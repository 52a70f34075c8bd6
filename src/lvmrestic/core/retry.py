# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/lvmrestic/core/retry.py

"""
Retry with backoff for operations whose failure is worth one more try.

Used for monitoring delivery: a freshly discovered item may not be known to
the monitoring server yet, so the first send can fail where a later one
succeeds. The process gate uses the same delay schedule between polls.
"""

import time
from typing import Any, Callable, Tuple, Type

from loguru import logger


class RetryConfig:
    """Configuration for retry behavior"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 2.0
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    @classmethod
    def fixed(cls, attempts: int, delay: float) -> "RetryConfig":
        """Constant delay between attempts."""
        return cls(max_attempts=attempts, base_delay=delay, max_delay=delay, exponential_base=1.0)


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Calculate delay for exponential backoff, capped at max_delay"""
    if attempt <= 0:
        return 0.0

    delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    return max(0.0, min(delay, config.max_delay))


class RetryableOperation:
    """Context manager for retry operations with detailed logging"""

    def __init__(
        self,
        operation_name: str,
        config: RetryConfig,
        retryable_exceptions: Tuple[Type[Exception], ...] = (Exception,),
        sleep: Callable[[float], None] = time.sleep
    ):
        self.operation_name = operation_name
        self.config = config
        self.retryable_exceptions = retryable_exceptions
        self.attempt = 0
        self.start_time = None
        self._sleep = sleep

    def __enter__(self):
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            duration = time.time() - self.start_time
            logger.debug(f"{self.operation_name} completed in {duration:.2f}s")
        return False

    def execute(self, func: Callable, *args, **kwargs) -> Any:
        """Execute a function with retry logic"""
        last_exception = None

        for attempt in range(1, self.config.max_attempts + 1):
            self.attempt = attempt
            try:
                result = func(*args, **kwargs)
                if attempt > 1:
                    logger.info(f"{self.operation_name} succeeded on attempt {attempt}")
                return result

            except self.retryable_exceptions as e:
                last_exception = e
                if attempt >= self.config.max_attempts:
                    break

                delay = calculate_delay(attempt, self.config)
                logger.error(
                    f"{self.operation_name} failed on attempt {attempt}/{self.config.max_attempts}: {e}. "
                    f"Retrying in {delay:.0f} seconds..."
                )
                if delay > 0:
                    self._sleep(delay)

        logger.error(f"{self.operation_name} failed after {self.config.max_attempts} attempts")
        raise last_exception
