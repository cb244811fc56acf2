from datetime import datetime, timezone

import pytest

from bisac_tools.data_models import Category, Entry, PageContent, Snapshot


class FakePageDriver:
    """
    In-memory page driver.

    ``pages`` maps a URL to a PageContent, an exception instance (raised on
    every call) or a list of those consumed one per call.
    """

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    async def navigate(self, url, *, timeout, wait_until):
        self.calls.append(url)
        outcome = self.pages[url]
        if isinstance(outcome, list):
            outcome = outcome.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class RecordingSleep:
    """Async sleep replacement that returns immediately and records the delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def fake_driver():
    return FakePageDriver


def make_page(url, heading, codes):
    blocks = ["Use subjects in this section for works about the category."]
    blocks += [f"{code} {label}" for code, label in codes]
    return PageContent(url=url, heading=heading, blocks=tuple(blocks))


@pytest.fixture
def page_factory():
    return make_page


def make_snapshot(categories, when=datetime(2024, 1, 1, tzinfo=timezone.utc)):
    """Build a snapshot from ``{heading: [(code, label), ...]}``."""
    return Snapshot(
        generated_at=when,
        categories=tuple(
            Category(heading=heading, entries=tuple(Entry(code=c, label=l) for c, l in entries))
            for heading, entries in categories.items()
        ),
    )


@pytest.fixture
def snapshot_factory():
    return make_snapshot


@pytest.fixture
def sample_snapshot():
    return make_snapshot(
        {
            "FICTION": [
                ("FIC000000", "General"),
                ("FIC001000", "Action & Adventure"),
                ("FIC002000", "Westerns"),
            ],
            "COMICS & GRAPHIC NOVELS": [
                ("CGN000000", "General"),
                ("CGN004010", "Superheroes"),
            ],
            "POETRY": [
                ("POE000000", "General"),
            ],
        }
    )
