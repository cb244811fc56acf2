"""
Bounded-retry page fetching.

The only component that talks to the network during a batch. Each attempt is
announced to the progress sink, bounded by its own timeout, and followed by a
flat pause before the next one. Exhausting the attempts raises
:class:`FetchError` with the last underlying cause chained.
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_fixed

from bisac_tools.data_models import PageContent
from bisac_tools.logger import get_logger
from bisac_tools.scraping.page_driver import PageDriver
from bisac_tools.scraping.progress import FetchAttempt, ProgressSink, emit

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class FetchOptions:
    """Retry and timeout settings for one page fetch."""

    max_attempts: int = 3
    timeout: float = 30.0
    retry_delay: float = 2.0
    wait_until: str = "networkidle"

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.retry_delay < 0:
            raise ValueError(f"retry_delay must be >= 0, got {self.retry_delay}")


class FetchError(Exception):
    """Raised when every attempt to load a URL failed."""

    def __init__(self, url: str, attempts: int, last_cause: Optional[BaseException]) -> None:
        """Initialize the exception."""
        self.url = url
        self.attempts = attempts
        self.last_cause = last_cause
        cause = f"{type(last_cause).__name__}: {last_cause}" if last_cause is not None else "unknown"
        super().__init__(f"Giving up on {url} after {attempts} attempt(s): {cause}")


async def fetch(
    driver: PageDriver,
    url: str,
    options: FetchOptions,
    on_event: Optional[ProgressSink] = None,
    sleep: Sleep = asyncio.sleep,
) -> PageContent:
    """
    Navigate to ``url`` and return its content, retrying failed navigations.

    :param driver: Page driver, reused across calls.
    :param url: Page to load.
    :param options: Attempts, per-attempt timeout, flat retry delay, wait condition.
    :param on_event: Optional sink receiving a :class:`FetchAttempt` per attempt.
    :param sleep: Coroutine used for the retry pause (injectable for tests).
    :raises FetchError: when all attempts failed.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.max_attempts),
        wait=wait_fixed(options.retry_delay),
        retry=retry_if_exception_type(Exception),
        sleep=sleep,
    )

    try:
        async for attempt in retrying:
            with attempt:
                attempt_index = attempt.retry_state.attempt_number
                emit(on_event, FetchAttempt(attempt_index, options.max_attempts, url))
                try:
                    return await asyncio.wait_for(
                        driver.navigate(url, timeout=options.timeout, wait_until=options.wait_until),
                        timeout=options.timeout,
                    )
                except Exception as e:
                    logger.debug("Attempt %d/%d for %s failed: %s", attempt_index, options.max_attempts, url, e)
                    raise
    except RetryError as e:
        last_cause = e.last_attempt.exception()
        raise FetchError(url, e.last_attempt.attempt_number, last_cause) from last_cause

    # AsyncRetrying either returns from inside the loop or raises
    raise FetchError(url, options.max_attempts, None)
