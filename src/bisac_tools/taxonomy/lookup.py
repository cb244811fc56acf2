"""Lookups over a loaded snapshot: codes, headings, full labels and free-text search."""
from dataclasses import dataclass
from typing import Iterable, Optional

from bisac_tools.data_models import (
    FULL_LABEL_SEPARATOR,
    CandidateEntry,
    Category,
    Entry,
    Snapshot,
    heading_key,
)
from bisac_tools.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SearchHit:
    heading: str
    entry: Entry

    @property
    def full_label(self) -> str:
        return f"{self.heading}{FULL_LABEL_SEPARATOR}{self.entry.label}"


def normalize_code(code: str) -> str:
    return code.strip().upper()


def find_entry(snapshot: Snapshot, code: str) -> Optional[tuple[Category, Entry]]:
    """First (category, entry) holding ``code`` in snapshot order."""
    code = normalize_code(code)
    for category, entry in snapshot.iter_entries():
        if entry.code == code:
            return category, entry
    return None


def full_label_for_code(snapshot: Snapshot, code: str) -> Optional[str]:
    """'HEADING / label' for a code, or None if the snapshot does not contain it."""
    found = find_entry(snapshot, code)
    if found is None:
        logger.info("No label found for code %s", normalize_code(code))
        return None
    category, entry = found
    return category.full_label(entry)


def heading_for_code(snapshot: Snapshot, code: str) -> Optional[str]:
    found = find_entry(snapshot, code)
    return found[0].heading if found is not None else None


def find_category(snapshot: Snapshot, heading: str) -> Optional[Category]:
    """Category whose heading matches, ignoring case and '&'/'AND' spelling."""
    key = heading_key(heading)
    for category in snapshot.categories:
        if category.heading_key == key:
            return category
    return None


def entries_for_heading(snapshot: Snapshot, heading: str) -> list[Entry]:
    category = find_category(snapshot, heading)
    if category is None:
        logger.info("No category found with heading '%s'", heading)
        return []
    return list(category.entries)


def code_for_full_label(snapshot: Snapshot, full_label: str) -> Optional[str]:
    """
    Code for a 'HEADING / label' string.

    The label comparison is case-insensitive. Some stored labels repeat the
    heading ("FICTION / Westerns" under FICTION), so both forms are accepted.
    """
    if "/" not in full_label:
        logger.warning("Invalid full label '%s': expected 'HEADING / label'", full_label)
        return None

    heading_part, _, label_part = full_label.partition("/")
    category = find_category(snapshot, heading_part)
    if category is None:
        logger.info("No category found with heading '%s'", heading_part.strip())
        return None

    wanted = label_part.strip().upper()
    with_heading = f"{category.heading}{FULL_LABEL_SEPARATOR}{label_part.strip()}".upper()
    for entry in category.entries:
        label = entry.label.upper()
        if label == wanted or label == with_heading:
            return entry.code

    logger.info("No entry labelled '%s' in '%s'", label_part.strip(), category.heading)
    return None


def search(snapshot: Snapshot, query: str) -> list[SearchHit]:
    """Entries whose code or label contains ``query`` (case-insensitive), in snapshot order."""
    term = query.strip().lower()
    if not term:
        return []
    return [
        SearchHit(heading=category.heading, entry=entry)
        for category, entry in snapshot.iter_entries()
        if term in entry.code.lower() or term in entry.label.lower()
    ]


def candidates_for_codes(snapshot: Snapshot, codes: Iterable[str]) -> list[CandidateEntry]:
    """Ranking candidates for the known codes among ``codes``; unknown ones are skipped."""
    candidates: list[CandidateEntry] = []
    seen: set[str] = set()
    for code in codes:
        found = find_entry(snapshot, code)
        if found is None:
            logger.debug("Code %s not in snapshot, skipping", code)
            continue
        category, entry = found
        if entry.code in seen:
            continue
        seen.add(entry.code)
        candidates.append(CandidateEntry(entry=entry, full_label=category.full_label(entry)))
    return candidates
