"""Exceptions raised by external data adapters."""
import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ProviderError(Exception):
    """Exception raised when an external data source misbehaves."""

    def __init__(self, message: str, provider: Optional[str] = None, chain: Optional[str] = None):
        """
        Initialize provider error.

        Args:
            message: Error message
            provider: Name of the data source
            chain: Chain name where error occurred
        """
        self.provider = provider
        self.chain = chain
        super().__init__(message)

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.provider and self.chain:
            return f"[{self.provider}@{self.chain}] {base_msg}"
        elif self.provider:
            return f"[{self.provider}] {base_msg}"
        return base_msg


class DataUnavailableError(ProviderError):
    """The requested data does not exist or could not be fetched."""


class RateLimitError(ProviderError):
    """The data source rejected the request for rate limiting."""


async def with_retry(operation: Callable[[], Awaitable[T]],
                     timeout_seconds: float,
                     description: str,
                     attempts: int = 2) -> T:
    """
    Run an async operation with a timeout, retrying once before giving up.

    Raises:
        DataUnavailableError: if every attempt timed out or failed
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            return await asyncio.wait_for(operation(), timeout=timeout_seconds)
        except (asyncio.TimeoutError, ProviderError, OSError) as e:
            last_error = e
            logger.warning(f"{description} failed (attempt {attempt}/{attempts}): {e}")

    raise DataUnavailableError(f"{description} failed after {attempts} attempts: {last_error}")
