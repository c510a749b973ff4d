"""
Retry policy for remote ledger calls.
"""

import asyncio
from typing import Any, Awaitable, Callable, List, Optional
from loguru import logger

from rentcollector.config import RETRY_MAX_RETRIES, RETRY_BASE_DELAY_SEC
from rentcollector.errors import RateLimitedError, RentCollectorError, RetryExhaustedError
from rentcollector.utils.rate_limit_utils import is_rate_limit_exception


class RetryPolicy:
    """
    Retries remote calls that fail because of rate limiting.

    Rate limited calls are retried with exponential backoff. Any other error
    is treated as non-transient and raised on the first failure.
    """

    def __init__(
        self,
        max_retries: int = RETRY_MAX_RETRIES,
        base_delay: float = RETRY_BASE_DELAY_SEC,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ):
        """
        Initialize the retry policy.

        Args:
            max_retries: Retries after the first attempt
            base_delay: Delay before the first retry in seconds, doubled each retry
            sleep: Coroutine used to wait between attempts (defaults to asyncio.sleep)
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._sleep = sleep or asyncio.sleep
        # Backoff delays taken by the most recent call, in order
        self.delays: List[float] = []

    def backoff_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt + 1``."""
        return self.base_delay * (2 ** attempt)

    @staticmethod
    def is_retryable(error: Exception) -> bool:
        if isinstance(error, RateLimitedError):
            return True
        # Already classified by the ledger client as something else
        if isinstance(error, RentCollectorError):
            return False
        return is_rate_limit_exception(error)

    async def call(self, operation: Callable[..., Awaitable[Any]], *args, description: str = "remote call", **kwargs) -> Any:
        """
        Run a remote call under the retry policy.

        Args:
            operation: Coroutine function performing the remote call
            *args, **kwargs: Arguments passed to operation
            description: Human readable name used in logs

        Returns:
            Result of operation

        Raises:
            RetryExhaustedError: If every attempt was rate limited
            Exception: Any non rate limit error, unchanged
        """
        self.delays = []
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                return await operation(*args, **kwargs)
            except Exception as e:
                if not self.is_retryable(e):
                    raise
                last_error = e

            if attempt < self.max_retries:
                delay = self.backoff_for(attempt)
                logger.warning(
                    f"Rate limited during {description} (attempt {attempt + 1}/{self.max_retries + 1}). "
                    f"Waiting {delay:.2f}s before retry"
                )
                self.delays.append(delay)
                await self._sleep(delay)

        logger.error(f"{description} still rate limited after {self.max_retries + 1} attempts")
        raise RetryExhaustedError(
            f"{description} failed after {self.max_retries + 1} attempts: {last_error}",
            last_error=last_error,
        )
