"""Tests for bounded-retry page fetching."""

import asyncio

import pytest

from bisac_tools.data_models import PageContent
from bisac_tools.scraping.fetch_controller import FetchError, FetchOptions, fetch
from bisac_tools.scraping.page_driver import PageLoadError
from bisac_tools.scraping.progress import FetchAttempt

URL = "https://www.bisg.org/fiction"
PAGE = PageContent(url=URL, heading="FICTION", blocks=("FIC000000 General",))


def test_success_on_first_attempt_is_not_retried(fake_driver, sleep):
    driver = fake_driver({URL: PAGE})
    events = []

    page = asyncio.run(fetch(driver, URL, FetchOptions(max_attempts=3, retry_delay=2.0), events.append, sleep=sleep))

    assert page == PAGE
    assert driver.calls == [URL]
    assert events == [FetchAttempt(1, 3, URL)]
    assert sleep.delays == []


def test_retries_with_flat_delay_then_succeeds(fake_driver, sleep):
    driver = fake_driver({URL: [PageLoadError(URL, "boom"), PageLoadError(URL, "boom"), PAGE]})
    events = []

    page = asyncio.run(fetch(driver, URL, FetchOptions(max_attempts=3, retry_delay=2.5), events.append, sleep=sleep))

    assert page == PAGE
    assert [e.attempt_index for e in events] == [1, 2, 3]
    assert all(e.max_attempts == 3 and e.url == URL for e in events)
    assert sleep.delays == [2.5, 2.5]


def test_exhausted_attempts_raise_fetch_error_with_last_cause(fake_driver, sleep):
    first = PageLoadError(URL, "first")
    last = PageLoadError(URL, "last", status_code=503)
    driver = fake_driver({URL: [first, last]})

    with pytest.raises(FetchError) as exc_info:
        asyncio.run(fetch(driver, URL, FetchOptions(max_attempts=2, retry_delay=1.0), sleep=sleep))

    err = exc_info.value
    assert err.url == URL
    assert err.attempts == 2
    assert err.last_cause is last
    assert err.__cause__ is last
    assert len(driver.calls) == 2


def test_single_attempt_does_not_sleep(fake_driver, sleep):
    driver = fake_driver({URL: RuntimeError("down")})
    with pytest.raises(FetchError):
        asyncio.run(fetch(driver, URL, FetchOptions(max_attempts=1), sleep=sleep))
    assert driver.calls == [URL]
    assert sleep.delays == []


def test_attempt_timeout_counts_as_failure(sleep):
    class SlowDriver:
        def __init__(self):
            self.calls = 0

        async def navigate(self, url, *, timeout, wait_until):
            self.calls += 1
            if self.calls == 1:
                await asyncio.sleep(10)
            return PAGE

    driver = SlowDriver()
    page = asyncio.run(fetch(driver, URL, FetchOptions(max_attempts=2, timeout=0.05, retry_delay=0), sleep=sleep))
    assert page == PAGE
    assert driver.calls == 2


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"timeout": 0},
        {"retry_delay": -1},
    ],
)
def test_invalid_options(kwargs):
    with pytest.raises(ValueError):
        FetchOptions(**kwargs)
