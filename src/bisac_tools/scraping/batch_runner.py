"""
Sequential batch scraping of category pages.

Pages are processed one after another with a random pause before each, through
one shared page driver. A page that fails at any stage is recorded and skipped;
the batch itself never fails because of a single URL.
"""
import asyncio
import random
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional, Sequence

from bisac_tools.data_models import Category, Snapshot
from bisac_tools.logger import get_logger
from bisac_tools.scraping.fetch_controller import FetchError, FetchOptions, Sleep, fetch
from bisac_tools.scraping.page_driver import PageDriver
from bisac_tools.scraping.progress import (
    BatchFinished,
    PageFailed,
    PageStarted,
    PageSucceeded,
    ProgressSink,
    emit,
)
from bisac_tools.scraping.segmenter import BOILERPLATE_PHRASES, segment_page
from bisac_tools.scraping.validator import CategoryValidationError, validate

logger = get_logger(__name__)


class DuplicateCategoryError(Exception):
    """A page produced a heading already present in the batch."""

    def __init__(self, heading: str) -> None:
        """Initialize the exception."""
        self.heading = heading
        super().__init__(f"Category '{heading}' was already collected in this batch")


@dataclass(frozen=True)
class BatchOptions:
    """Pacing and limits for one batch run."""

    min_delay: float = 1.0
    max_delay: float = 2.0
    fetch: FetchOptions = field(default_factory=FetchOptions)
    max_categories: Optional[int] = None

    def __post_init__(self) -> None:
        if self.min_delay < 0 or self.max_delay < self.min_delay:
            raise ValueError(f"Invalid delay window [{self.min_delay}, {self.max_delay}]")
        if self.max_categories is not None and self.max_categories < 1:
            raise ValueError(f"max_categories must be >= 1, got {self.max_categories}")


@dataclass(frozen=True)
class UrlFailure:
    """One URL that contributed nothing to the snapshot."""

    url: str
    stage: str
    reason: str


@dataclass(frozen=True)
class BatchResult:
    snapshot: Snapshot
    failures: list[UrlFailure]
    cancelled: bool = False

    @property
    def succeeded(self) -> int:
        return self.snapshot.category_count


class BatchRunner:
    """
    Run fetch, segment and validate over a list of category URLs.

    :param driver: Page driver shared by every URL of the batch.
    :param options: Delay window, fetch options and optional URL limit.
    :param on_event: Progress sink; defaults to no reporting.
    :param excluded_phrases: Boilerplate substrings passed to the segmenter.
    :param sleep: Coroutine used for all pauses (injectable for tests).
    :param rng: Random source for the inter-request delay.
    :param clock: Returns the timestamp stamped on the snapshot.
    """

    def __init__(
        self,
        driver: PageDriver,
        options: Optional[BatchOptions] = None,
        on_event: Optional[ProgressSink] = None,
        excluded_phrases: Sequence[str] = BOILERPLATE_PHRASES,
        sleep: Sleep = asyncio.sleep,
        rng: Optional[random.Random] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.driver = driver
        self.options = options or BatchOptions()
        self.on_event = on_event
        self.excluded_phrases = tuple(excluded_phrases)
        self.sleep = sleep
        self.rng = rng or random.Random()
        self.clock = clock

    async def _process_url(self, url: str) -> Category:
        page = await fetch(self.driver, url, self.options.fetch, on_event=self.on_event, sleep=self.sleep)
        segmented = segment_page(page, self.excluded_phrases)
        return validate(segmented)

    async def run(self, urls: Sequence[str], cancel_event: Optional[asyncio.Event] = None) -> BatchResult:
        """
        Scrape ``urls`` in order and collect the valid categories.

        Cancellation is only checked between URLs; a page already being fetched
        is finished first. Whatever was collected before is kept.
        """
        todo = list(urls)
        if self.options.max_categories is not None and len(todo) > self.options.max_categories:
            logger.info("Limiting batch to %d of %d URLs", self.options.max_categories, len(todo))
            todo = todo[: self.options.max_categories]

        categories: list[Category] = []
        seen_headings: set[str] = set()
        failures: list[UrlFailure] = []
        cancelled = False

        for index, url in enumerate(todo, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Batch cancelled before %s (%d URL(s) left)", url, len(todo) - index + 1)
                cancelled = True
                break

            emit(self.on_event, PageStarted(url=url, index=index, total=len(todo)))
            await self.sleep(self.rng.uniform(self.options.min_delay, self.options.max_delay))

            try:
                category = await self._process_url(url)
                if category.heading_key in seen_headings:
                    raise DuplicateCategoryError(category.heading)
            except FetchError as e:
                failures.append(self._failure(url, "fetch", str(e)))
                continue
            except CategoryValidationError as e:
                failures.append(self._failure(url, "validate", str(e)))
                continue
            except DuplicateCategoryError as e:
                failures.append(self._failure(url, "collect", str(e)))
                continue
            except Exception as e:
                logger.exception("Unexpected error while processing %s", url)
                failures.append(self._failure(url, "unexpected", f"{type(e).__name__}: {e}"))
                continue

            seen_headings.add(category.heading_key)
            categories.append(category)
            emit(self.on_event, PageSucceeded(url=url, heading=category.heading, entry_count=len(category.entries)))

        snapshot = Snapshot(generated_at=self.clock(), categories=tuple(categories))
        emit(self.on_event, BatchFinished(succeeded=len(categories), failed=len(failures), cancelled=cancelled))
        return BatchResult(snapshot=snapshot, failures=failures, cancelled=cancelled)

    def _failure(self, url: str, stage: str, reason: str) -> UrlFailure:
        emit(self.on_event, PageFailed(url=url, stage=stage, reason=reason))
        return UrlFailure(url=url, stage=stage, reason=reason)
