"""
Progress events emitted while scraping.

The fetch controller and the batch runner report what they are doing by calling
a sink with one of the event objects below. Sinks only observe: whatever they
do, control flow is unchanged.
"""
from dataclasses import dataclass
from typing import Callable, Optional, Union

from bisac_tools.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PageStarted:
    url: str
    index: int
    total: int


@dataclass(frozen=True)
class FetchAttempt:
    attempt_index: int
    max_attempts: int
    url: str


@dataclass(frozen=True)
class PageSucceeded:
    url: str
    heading: str
    entry_count: int


@dataclass(frozen=True)
class PageFailed:
    url: str
    stage: str
    reason: str


@dataclass(frozen=True)
class BatchFinished:
    succeeded: int
    failed: int
    cancelled: bool = False


ProgressEvent = Union[PageStarted, FetchAttempt, PageSucceeded, PageFailed, BatchFinished]
ProgressSink = Callable[[ProgressEvent], None]


def log_progress(event: ProgressEvent) -> None:
    """Default sink: write each event through the module logger."""
    if isinstance(event, PageStarted):
        logger.info("[%d/%d] Processing %s", event.index, event.total, event.url)
    elif isinstance(event, FetchAttempt):
        if event.attempt_index > 1:
            logger.info("Attempt %d/%d for %s", event.attempt_index, event.max_attempts, event.url)
        else:
            logger.debug("Attempt %d/%d for %s", event.attempt_index, event.max_attempts, event.url)
    elif isinstance(event, PageSucceeded):
        logger.info("Collected '%s' (%d entries)", event.heading, event.entry_count)
    elif isinstance(event, PageFailed):
        logger.warning("Failed %s at %s: %s", event.url, event.stage, event.reason)
    elif isinstance(event, BatchFinished):
        status = "cancelled" if event.cancelled else "finished"
        logger.info("Batch %s: %d succeeded, %d failed", status, event.succeeded, event.failed)


def emit(sink: Optional[ProgressSink], event: ProgressEvent) -> None:
    """Send ``event`` to ``sink`` if there is one. Errors raised by the sink are logged and dropped."""
    if sink is None:
        return
    try:
        sink(event)
    except Exception:
        logger.warning("Progress sink failed on %s", type(event).__name__, exc_info=True)
