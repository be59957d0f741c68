"""
Retry Policy - Attempt budget for provider requests
Only transient failures consume an attempt; every other error is terminal
"""
import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from config import ResolverConfig
from errors import Exhausted, ResolveError

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryPolicy:
    """Fixed attempt budget with optional exponential backoff"""

    @staticmethod
    def calculate_backoff(attempt: int, base: float = ResolverConfig.RETRY_BACKOFF) -> float:
        return base * (2 ** attempt)

    @staticmethod
    async def with_retry(
        func: Callable[[], Awaitable[T]],
        max_attempts: int = ResolverConfig.MAX_ATTEMPTS,
        operation_name: str = "operation"
    ) -> T:
        """
        Run func until it succeeds, raises a terminal error,
        or the budget is spent (raises Exhausted).
        """
        last_exception = None

        for attempt in range(max_attempts):
            try:
                return await func()
            except ResolveError as e:
                if not e.retryable:
                    raise

                last_exception = e
                remaining = max_attempts - attempt - 1
                logger.debug(f"[Retry] {operation_name} failed: {e}, remaining tries: {remaining}")
                if remaining == 0:
                    break

                backoff = RetryPolicy.calculate_backoff(attempt)
                if backoff > 0:
                    await asyncio.sleep(backoff)

        raise Exhausted(f"{operation_name}: {max_attempts} attempts failed") from last_exception
