"""Bounded exponential backoff for rate-limited remote calls."""

import asyncio
import logging
from typing import Any, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sheetsdb.config.config import RETRY_MAX_ATTEMPTS, RETRY_BASE_DELAY, RETRY_MAX_DELAY
from sheetsdb.exceptions import RateLimited

logger = logging.getLogger(__name__)

T = TypeVar('T')


class RetryPolicy:
    """Retries a blocking remote call on RateLimited only.

    The call runs on a worker thread so the event loop stays free while the
    request is in flight. Any other exception propagates on the first attempt.
    """

    def __init__(self, max_attempts: int = RETRY_MAX_ATTEMPTS, base_delay: float = RETRY_BASE_DELAY,
                 max_delay: float = RETRY_MAX_DELAY, sleep: Callable = asyncio.sleep):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._sleep = sleep

    @classmethod
    def from_config(cls, config, sleep: Callable = asyncio.sleep) -> 'RetryPolicy':
        return cls(
            max_attempts=config.retry_max_attempts,
            base_delay=config.retry_base_delay,
            max_delay=config.retry_max_delay,
            sleep=sleep,
        )

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay, min=self.base_delay, max=self.max_delay),
            retry=retry_if_exception_type(RateLimited),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

    async def run(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Runs fn(*args, **kwargs), retrying on RateLimited. Re-raises after the last attempt."""
        async def attempt():
            return await asyncio.to_thread(fn, *args, **kwargs)

        return await self._retrying()(attempt)

    async def run_or_default(self, default: T, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Read flavour of run(): exhausted rate-limit retries yield `default`."""
        try:
            return await self.run(fn, *args, **kwargs)
        except RateLimited:
            logger.warning(f"Rate limited after {self.max_attempts} attempts. Returning default result.")
            return default
