"""
Segmentation of a category page into notes and code/label entries.

Category pages are a flat run of paragraphs: free-text guidance first, then one
paragraph per subject code. There is no structural marker between the two, so
the split is made by a single forward scan with one irrevocable transition:
the first paragraph that starts with a code ends the notes.
"""
import re
from enum import StrEnum
from typing import Iterable, Sequence

from bisac_tools.data_models import PageContent, RawEntry, SegmentedPage
from bisac_tools.logger import get_logger

logger = get_logger(__name__)

# Footer and download instructions repeated on every page
BOILERPLATE_PHRASES: tuple[str, ...] = (
    "If your title does not have subject content",
    ", Book Industry Study Group",
    "To download and incorporate this list",
    "Use the information provided here",
)

CODE_PREFIX_RE = re.compile(r"^[A-Z]{3}[0-9]{6}")
ENTRY_RE = re.compile(r"^([A-Z]{3}[0-9]{6})\s+(.+)$")


class SegmenterState(StrEnum):
    """Phase of the forward scan."""

    IN_NOTES = "in_notes"
    IN_ENTRIES = "in_entries"


def is_excluded(text: str, excluded_phrases: Iterable[str] = BOILERPLATE_PHRASES) -> bool:
    """Return whether a block is boilerplate."""
    return any(phrase in text for phrase in excluded_phrases)


def segment(
    blocks: Sequence[str],
    heading: str = "",
    excluded_phrases: Sequence[str] = BOILERPLATE_PHRASES,
) -> SegmentedPage:
    """
    Split the ordered text blocks of one page into notes and entries.

    Empty and boilerplate blocks are skipped. Everything before the first block
    starting with a code is a note. From that block on, only blocks of the
    form ``CODE label`` are kept; anything else is dropped, never turned into
    a note. Duplicate codes are left for the validator.

    :param blocks: Paragraph texts in page order.
    :param heading: Title element text supplied by the page driver.
    :param excluded_phrases: Substrings marking boilerplate blocks.
    :return: Unvalidated segmentation result.
    """
    state = SegmenterState.IN_NOTES
    notes: list[str] = []
    entries: list[RawEntry] = []
    dropped = 0

    for block in blocks:
        text = block.strip()
        if not text or is_excluded(text, excluded_phrases):
            continue

        if state is SegmenterState.IN_NOTES:
            if not CODE_PREFIX_RE.match(text):
                notes.append(text)
                continue
            state = SegmenterState.IN_ENTRIES

        match = ENTRY_RE.match(text)
        if match is None:
            dropped += 1
            continue
        entries.append(RawEntry(code=match.group(1), label=match.group(2).strip()))

    if dropped:
        logger.debug("Dropped %d non-entry block(s) after the notes boundary on '%s'", dropped, heading)
    if not entries:
        logger.debug("No entries found on page '%s' (%d block(s))", heading, len(blocks))

    return SegmentedPage(heading=heading, notes=tuple(notes), entries=tuple(entries))


def segment_page(page: PageContent, excluded_phrases: Sequence[str] = BOILERPLATE_PHRASES) -> SegmentedPage:
    """Segment a page returned by the page driver."""
    return segment(page.blocks, heading=page.heading, excluded_phrases=excluded_phrases)
