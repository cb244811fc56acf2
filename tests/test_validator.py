"""Tests for category validation."""

import pytest

from bisac_tools.data_models import Entry, RawEntry, SegmentedPage
from bisac_tools.scraping.validator import (
    CategoryValidationError,
    EmptyHeadingError,
    NoEntriesError,
    ValidationReason,
    validate,
)


def _page(heading="FICTION", notes=(), entries=()):
    return SegmentedPage(
        heading=heading,
        notes=tuple(notes),
        entries=tuple(RawEntry(code=c, label=l) for c, l in entries),
    )


def test_first_occurrence_wins():
    category = validate(_page(entries=[("FIC000000", "x"), ("FIC000000", "y"), ("FIC001000", "z")]))
    assert category.entries == (
        Entry(code="FIC000000", label="x"),
        Entry(code="FIC001000", label="z"),
    )


def test_no_entries():
    with pytest.raises(NoEntriesError) as exc_info:
        validate(_page(entries=[]))
    assert exc_info.value.reason is ValidationReason.NO_ENTRIES
    assert exc_info.value.heading == "FICTION"


def test_empty_heading_checked_first():
    with pytest.raises(EmptyHeadingError) as exc_info:
        validate(_page(heading="   ", entries=[]))
    assert exc_info.value.reason == "EmptyHeading"
    assert isinstance(exc_info.value, CategoryValidationError)


def test_trims_and_drops_empty_notes():
    category = validate(
        _page(
            heading="  FICTION ",
            notes=["  note one ", "   ", "note two"],
            entries=[(" FIC000000 ", "  General  ")],
        )
    )
    assert category.heading == "FICTION"
    assert category.notes == ("note one", "note two")
    assert category.entries == (Entry(code="FIC000000", label="General"),)


def test_malformed_entries_dropped():
    category = validate(_page(entries=[("FIC00000", "short code"), ("FIC000000", "   "), ("FIC001000", "ok")]))
    assert [e.code for e in category.entries] == ["FIC001000"]


def test_only_malformed_entries_is_no_entries():
    with pytest.raises(NoEntriesError):
        validate(_page(entries=[("bad", "label")]))
