"""
Category validation.

Turns a raw :class:`SegmentedPage` into the canonical :class:`Category` or
rejects it. Checks run in a fixed order and the first failure wins.
"""
from enum import StrEnum

from bisac_tools.data_models import CODE_RE, Category, Entry, SegmentedPage
from bisac_tools.logger import get_logger

logger = get_logger(__name__)


class ValidationReason(StrEnum):
    """Why a segmented page was rejected."""

    EMPTY_HEADING = "EmptyHeading"
    NO_ENTRIES = "NoEntries"


class CategoryValidationError(Exception):
    """Base exception for rejected category pages."""

    reason: ValidationReason

    def __init__(self, reason: ValidationReason, message: str) -> None:
        """Initialize the exception."""
        self.reason = reason
        super().__init__(message)


class EmptyHeadingError(CategoryValidationError):
    """The page has no usable heading."""

    def __init__(self) -> None:
        """Initialize the exception."""
        super().__init__(ValidationReason.EMPTY_HEADING, "Category heading is empty")


class NoEntriesError(CategoryValidationError):
    """The page yielded no usable entries."""

    def __init__(self, heading: str) -> None:
        """Initialize the exception."""
        self.heading = heading
        super().__init__(ValidationReason.NO_ENTRIES, f"Category '{heading}' has no entries")


def validate(raw: SegmentedPage) -> Category:
    """
    Validate one segmented page.

    1. heading must be non-empty after trimming (``EmptyHeading``);
    2. there must be at least one entry (``NoEntries``);
    3. notes and entry fields are trimmed, empty notes dropped, entries with a
       malformed code or an empty label dropped;
    4. entries are de-duplicated by code, first occurrence wins.
    """
    heading = raw.heading.strip()
    if not heading:
        raise EmptyHeadingError()
    if not raw.entries:
        raise NoEntriesError(heading)

    notes = tuple(note.strip() for note in raw.notes if note.strip())

    entries: list[Entry] = []
    seen: set[str] = set()
    for raw_entry in raw.entries:
        code = raw_entry.code.strip()
        label = raw_entry.label.strip()
        if not CODE_RE.match(code) or not label:
            logger.warning("Dropping malformed entry %r / %r in '%s'", raw_entry.code, raw_entry.label, heading)
            continue
        if code in seen:
            logger.debug("Duplicate code %s in '%s', keeping first occurrence", code, heading)
            continue
        seen.add(code)
        entries.append(Entry(code=code, label=label))

    if not entries:
        raise NoEntriesError(heading)

    return Category(heading=heading, notes=notes, entries=tuple(entries))
