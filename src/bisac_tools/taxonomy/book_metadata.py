"""
Book metadata from the Google Books API and BISAC suggestions for an ISBN.

Metadata failures never raise past this module: an unreachable API, an error
status or an empty result all mean "no metadata", which the ranker sees as no
candidates.
"""
import re
from typing import Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field

from bisac_tools.data_models import CandidateEntry, Snapshot
from bisac_tools.logger import get_logger
from bisac_tools.taxonomy.lookup import candidates_for_codes
from bisac_tools.taxonomy.ranker import RankingSignals, rank

logger = get_logger(__name__)

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"

ISBN_RE = re.compile(r"^(\d{13}|\d{9}[\dX])$")


class InvalidIsbnError(ValueError):
    """Raised for identifiers that are not 10 or 13 character ISBNs."""

    def __init__(self, raw: str) -> None:
        """Initialize the exception."""
        self.raw = raw
        super().__init__(f"Invalid ISBN '{raw}': expected 10 or 13 digits (hyphens optional)")


def normalize_isbn(raw: str) -> str:
    """Strip hyphens and spaces; ISBN-10 may end in 'X'."""
    cleaned = re.sub(r"[-\s]", "", raw).upper()
    if not ISBN_RE.match(cleaned):
        raise InvalidIsbnError(raw)
    return cleaned


class BookMetadata(BaseModel):
    """The parts of a Google Books volume used for ranking."""

    model_config = ConfigDict(frozen=True)

    isbn: str
    title: str = "Unknown Title"
    description: str = ""
    loose_categories: tuple[str, ...] = ()
    bisac_codes: tuple[str, ...] = ()

    def signals(self) -> RankingSignals:
        return RankingSignals(description=self.description, loose_categories=self.loose_categories)


class BookSuggestion(BaseModel):
    """Candidate entries for one ISBN and the one the ranker picked."""

    model_config = ConfigDict(frozen=True)

    isbn: str
    title: Optional[str] = None
    candidates: list[CandidateEntry] = Field(default_factory=list)
    best: Optional[CandidateEntry] = None


def parse_volume(isbn: str, payload: dict) -> Optional[BookMetadata]:
    """Build metadata from the first item of a ``volumes`` response."""
    items = payload.get("items") or []
    if not items:
        return None

    info = items[0].get("volumeInfo") or {}
    identifiers = info.get("industryIdentifiers") or []
    return BookMetadata(
        isbn=isbn,
        title=info.get("title") or "Unknown Title",
        description=info.get("description") or "",
        loose_categories=tuple(info.get("categories") or ()),
        bisac_codes=tuple(i["identifier"] for i in identifiers if i.get("type") == "BISAC" and i.get("identifier")),
    )


class GoogleBooksClient:
    """Async client for the Google Books ``volumes`` endpoint."""

    def __init__(
        self,
        api_url: str = GOOGLE_BOOKS_URL,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self._client = client
        self._transport = transport

    async def fetch(self, isbn: str) -> Optional[BookMetadata]:
        """Metadata for ``isbn`` or None when the lookup failed or found nothing."""
        isbn = normalize_isbn(isbn)
        params = {"q": f"isbn:{isbn}"}
        try:
            if self._client is not None:
                resp = await self._client.get(self.api_url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                    resp = await client.get(self.api_url, params=params)
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            logger.warning("Google Books returned status %s for ISBN %s", e.response.status_code, isbn)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Google Books lookup failed for ISBN %s: %s", isbn, e)
            return None

        book = parse_volume(isbn, payload)
        if book is None:
            logger.info("No book found with ISBN %s", isbn)
        return book


def collect_candidates(book: BookMetadata, snapshot: Snapshot) -> list[CandidateEntry]:
    """
    Candidate entries for a book.

    BISAC identifiers on the volume are used when the snapshot knows them.
    Otherwise each loose category is matched against the snapshot: a heading
    contained in it contributes all of that category's entries and ends the
    search for that loose category; an entry label contained in it
    contributes that entry.
    """
    candidates = candidates_for_codes(snapshot, book.bisac_codes)
    if candidates:
        return candidates

    seen: set[str] = set()
    for loose in book.loose_categories:
        loose_upper = loose.upper()
        for category in snapshot.categories:
            if category.heading.upper() in loose_upper:
                for entry in category.entries:
                    if entry.code not in seen:
                        seen.add(entry.code)
                        candidates.append(CandidateEntry(entry=entry, full_label=category.full_label(entry)))
                break
            for entry in category.entries:
                if entry.label.upper() in loose_upper:
                    if entry.code not in seen:
                        seen.add(entry.code)
                        candidates.append(CandidateEntry(entry=entry, full_label=category.full_label(entry)))
                    break
    return candidates


async def suggest_for_isbn(isbn: str, snapshot: Snapshot, client: Optional[GoogleBooksClient] = None) -> BookSuggestion:
    """Look up ``isbn`` and rank the matching entries of ``snapshot``."""
    isbn = normalize_isbn(isbn)
    client = client or GoogleBooksClient()

    book = await client.fetch(isbn)
    if book is None:
        return BookSuggestion(isbn=isbn)

    candidates = collect_candidates(book, snapshot)
    best = rank(candidates, book.signals())
    logger.info("ISBN %s ('%s'): %d candidate(s)", isbn, book.title, len(candidates))
    return BookSuggestion(isbn=isbn, title=book.title, candidates=candidates, best=best)
