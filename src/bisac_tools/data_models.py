"""
Data models for BISAC taxonomy snapshots.

The scraper produces :class:`SegmentedPage` objects (raw, unvalidated), the
validator turns them into :class:`Category` objects, and a batch run collects
categories into an immutable :class:`Snapshot`. Comparing two snapshots yields
a :class:`ChangeReport`; ranking works on :class:`CandidateEntry` objects.
"""
import re
from datetime import datetime, timezone
from typing import Any, Iterator

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

CODE_PATTERN = r"^[A-Z]{3}[0-9]{6}$"
CODE_RE = re.compile(CODE_PATTERN)
FULL_LABEL_SEPARATOR = " / "


def heading_key(heading: str) -> str:
    """Comparison key for a heading: trimmed, upper-cased, '&' spelled as 'AND'."""
    collapsed = " ".join(heading.split()).upper()
    return " ".join(collapsed.replace("&", " AND ").split())


def ensure_utc(d: Any) -> datetime:
    """Convert input to a timezone-aware datetime (naive values are taken as UTC)."""
    if isinstance(d, datetime):
        dt = d
    elif isinstance(d, (int, float)):
        # milliseconds since epoch, as written by older snapshot files
        dt = datetime.fromtimestamp(d / 1000.0, tz=timezone.utc)
    else:
        dt = datetime.fromisoformat(str(d))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class FrozenModel(BaseModel):
    """Immutable model that rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid")


# ==== PAGE DRIVER OUTPUT ====

class PageContent(FrozenModel):
    """Text extracted from one loaded category page."""

    url: str
    heading: str = ""
    blocks: tuple[str, ...] = ()


# ==== SEGMENTER OUTPUT ====

class RawEntry(FrozenModel):
    """A code/label pair as found on the page, before validation."""

    code: str
    label: str


class SegmentedPage(FrozenModel):
    """Result of segmenting one category page. Nothing is trimmed or de-duplicated here."""

    heading: str = ""
    notes: tuple[str, ...] = ()
    entries: tuple[RawEntry, ...] = ()


# ==== TAXONOMY ====

class Entry(FrozenModel):
    """One leaf taxonomy item."""

    code: str = Field(pattern=CODE_PATTERN)
    label: str = Field(min_length=1)


class Category(FrozenModel):
    """A named group of entries plus its free-text notes."""

    heading: str = Field(min_length=1)
    notes: tuple[str, ...] = ()
    entries: tuple[Entry, ...] = ()

    @model_validator(mode="after")
    def _unique_codes(self) -> "Category":
        seen: set[str] = set()
        for entry in self.entries:
            if entry.code in seen:
                raise ValueError(f"Duplicate code {entry.code} in category '{self.heading}'")
            seen.add(entry.code)
        return self

    @property
    def heading_key(self) -> str:
        """Case and '&'/'AND' insensitive comparison key."""
        return heading_key(self.heading)

    def full_label(self, entry: Entry) -> str:
        """Return 'HEADING / label' for an entry of this category."""
        return f"{self.heading}{FULL_LABEL_SEPARATOR}{entry.label}"


class Snapshot(FrozenModel):
    """Immutable point-in-time collection of categories."""

    generated_at: datetime
    categories: tuple[Category, ...] = ()

    @field_validator("generated_at", mode="before")
    @classmethod
    def to_datetime(cls, d: Any) -> datetime:
        """Convert input to a timezone-aware datetime."""
        return ensure_utc(d)

    @model_validator(mode="after")
    def _unique_headings(self) -> "Snapshot":
        seen: set[str] = set()
        for category in self.categories:
            key = category.heading_key
            if key in seen:
                raise ValueError(f"Duplicate heading '{category.heading}' in snapshot")
            seen.add(key)
        return self

    @property
    def category_count(self) -> int:
        return len(self.categories)

    @property
    def entry_count(self) -> int:
        return sum(len(c.entries) for c in self.categories)

    def iter_entries(self) -> Iterator[tuple[Category, Entry]]:
        """Yield (category, entry) pairs in snapshot order."""
        for category in self.categories:
            for entry in category.entries:
                yield category, entry

    def summary(self) -> "SnapshotSummary":
        return SnapshotSummary(
            generated_at=self.generated_at,
            category_count=self.category_count,
            entry_count=self.entry_count,
        )


# ==== CHANGE REPORT ====

class SnapshotSummary(FrozenModel):
    """Counts describing one side of a comparison."""

    generated_at: datetime
    category_count: int
    entry_count: int


class EntryChange(FrozenModel):
    """An entry together with the heading that owns it."""

    heading: str
    entry: Entry


class EntryModification(FrozenModel):
    """Derived view: the removal and addition that share one code."""

    code: str
    before: EntryChange
    after: EntryChange


class ChangeReport(FrozenModel):
    """
    Structured difference between two snapshots.

    A moved or relabelled entry appears once in ``removed_entries`` and once in
    ``added_entries`` with the same code. :meth:`modified_entries` joins them
    but is not a separate record.
    """

    old_summary: SnapshotSummary
    new_summary: SnapshotSummary
    added_categories: tuple[Category, ...] = ()
    removed_categories: tuple[Category, ...] = ()
    added_entries: tuple[EntryChange, ...] = ()
    removed_entries: tuple[EntryChange, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not (
            self.added_categories
            or self.removed_categories
            or self.added_entries
            or self.removed_entries
        )

    def modified_entries(self) -> list[EntryModification]:
        """Join added and removed entries on code, in added-entry order."""
        removed_by_code = {change.entry.code: change for change in self.removed_entries}
        return [
            EntryModification(code=added.entry.code, before=removed_by_code[added.entry.code], after=added)
            for added in self.added_entries
            if added.entry.code in removed_by_code
        ]

    def modified_headings(self) -> list[str]:
        """Headings that gained or lost entries, excluding wholly added/removed categories."""
        whole = {c.heading_key for c in self.added_categories}
        whole.update(c.heading_key for c in self.removed_categories)
        headings: list[str] = []
        seen: set[str] = set()
        for change in (*self.added_entries, *self.removed_entries):
            key = heading_key(change.heading)
            if key in whole or key in seen:
                continue
            seen.add(key)
            headings.append(change.heading)
        return headings


# ==== RANKING ====

class CandidateEntry(FrozenModel):
    """A taxonomy entry being considered as a match for a book."""

    entry: Entry
    full_label: str

    @property
    def heading(self) -> str:
        return self.full_label.partition(FULL_LABEL_SEPARATOR)[0]

    @property
    def sub_label(self) -> str:
        """First level after the heading (empty when the label has no separator)."""
        parts = self.full_label.split(FULL_LABEL_SEPARATOR)
        return parts[1] if len(parts) > 1 else ""


class ScoredCandidate(FrozenModel):
    """Candidate with its heuristic score."""

    candidate: CandidateEntry
    score: int = 0
