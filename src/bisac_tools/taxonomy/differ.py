"""
Structural comparison of two taxonomy snapshots.

Categories are matched by heading key, entries by code across the whole
snapshot. A moved or relabelled entry is reported as one removal plus one
addition sharing the code; there is no separate "modified" record.
"""
from pathlib import Path
from typing import Optional, Union

from bisac_tools.data_models import Category, ChangeReport, EntryChange, Snapshot
from bisac_tools.logger import get_logger
from bisac_tools.snapshot_store import SnapshotFormatError, SnapshotStore

logger = get_logger(__name__)


class DiffInputError(Exception):
    """Raised when a snapshot given to the differ is missing, empty or unreadable."""


def _check_input(snapshot: Optional[Snapshot], side: str) -> Snapshot:
    if snapshot is None:
        raise DiffInputError(f"The {side} snapshot is missing")
    if not snapshot.categories:
        raise DiffInputError(f"The {side} snapshot has no categories")
    return snapshot


def _entries_by_code(snapshot: Snapshot, side: str) -> dict[str, tuple[Category, EntryChange]]:
    """Code -> (owning category, change record); first occurrence in snapshot order wins."""
    by_code: dict[str, tuple[Category, EntryChange]] = {}
    for category, entry in snapshot.iter_entries():
        if entry.code in by_code:
            kept = by_code[entry.code][0]
            logger.warning(
                "Code %s appears under both '%s' and '%s' in the %s snapshot; keeping '%s'",
                entry.code, kept.heading, category.heading, side, kept.heading,
            )
            continue
        by_code[entry.code] = (category, EntryChange(heading=category.heading, entry=entry))
    return by_code


def _changed(old: tuple[Category, EntryChange], new: tuple[Category, EntryChange]) -> bool:
    old_category, old_change = old
    new_category, new_change = new
    return old_category.heading_key != new_category.heading_key or old_change.entry.label != new_change.entry.label


def diff(old: Optional[Snapshot], new: Optional[Snapshot]) -> ChangeReport:
    """
    Compare two snapshots.

    Added categories and entries follow the order of ``new``; removed ones
    follow the order of ``old``. ``diff(s, s)`` is always empty.

    :raises DiffInputError: if either snapshot is missing or has no categories.
    """
    old = _check_input(old, "old")
    new = _check_input(new, "new")

    old_keys = {c.heading_key for c in old.categories}
    new_keys = {c.heading_key for c in new.categories}
    added_categories = tuple(c for c in new.categories if c.heading_key not in old_keys)
    removed_categories = tuple(c for c in old.categories if c.heading_key not in new_keys)

    old_entries = _entries_by_code(old, "old")
    new_entries = _entries_by_code(new, "new")

    added_entries = tuple(
        change
        for code, (category, change) in new_entries.items()
        if code not in old_entries or _changed(old_entries[code], (category, change))
    )
    removed_entries = tuple(
        change
        for code, (category, change) in old_entries.items()
        if code not in new_entries or _changed((category, change), new_entries[code])
    )

    report = ChangeReport(
        old_summary=old.summary(),
        new_summary=new.summary(),
        added_categories=added_categories,
        removed_categories=removed_categories,
        added_entries=added_entries,
        removed_entries=removed_entries,
    )
    logger.debug(
        "Diff: +%d/-%d categories, +%d/-%d entries",
        len(added_categories), len(removed_categories), len(added_entries), len(removed_entries),
    )
    return report


def diff_snapshot_files(
    old_path: Union[str, Path],
    new_path: Union[str, Path],
    store: Optional[SnapshotStore] = None,
) -> ChangeReport:
    """Load two snapshot files and diff them; load failures become :class:`DiffInputError`."""
    store = store or SnapshotStore()
    snapshots = []
    for path in (old_path, new_path):
        try:
            snapshots.append(store.load(path))
        except (FileNotFoundError, SnapshotFormatError) as e:
            raise DiffInputError(str(e)) from e
    return diff(*snapshots)


def _count_delta(before: int, after: int) -> str:
    if after > before:
        return f"+{after - before}"
    if after < before:
        return f"-{before - after}"
    return "no change"


def render_change_report(report: ChangeReport) -> list[str]:
    """Human-readable report lines, grouped by category."""
    old, new = report.old_summary, report.new_summary
    modified = report.modified_entries()
    modified_codes = {m.code for m in modified}
    headings = report.modified_headings()

    lines = [
        "BISAC Subject Headings Comparison Report",
        f"Comparing data from {old.generated_at.date().isoformat()} to {new.generated_at.date().isoformat()}",
        "Summary:",
        f"- Categories: {old.category_count} -> {new.category_count} ({_count_delta(old.category_count, new.category_count)})",
        f"- Entries: {old.entry_count} -> {new.entry_count} ({_count_delta(old.entry_count, new.entry_count)})",
        f"- New categories: {len(report.added_categories)}",
        f"- Removed categories: {len(report.removed_categories)}",
        f"- Modified categories: {len(headings)}",
        f"- New entries: {len(report.added_entries)}",
        f"- Removed entries: {len(report.removed_entries)}",
        f"- Modified entries: {len(modified)}",
    ]

    if report.added_categories:
        lines.append("New categories:")
        lines.extend(f"- {c.heading} ({len(c.entries)} entries)" for c in report.added_categories)
    if report.removed_categories:
        lines.append("Removed categories:")
        lines.extend(f"- {c.heading} ({len(c.entries)} entries)" for c in report.removed_categories)

    for heading in headings:
        lines.append(f"{heading}:")
        added = [c for c in report.added_entries if c.heading == heading and c.entry.code not in modified_codes]
        removed = [c for c in report.removed_entries if c.heading == heading and c.entry.code not in modified_codes]
        changed = [m for m in modified if m.after.heading == heading]
        if added:
            lines.append("  New entries:")
            lines.extend(f"    - {c.entry.code}: {c.entry.label}" for c in added)
        if removed:
            lines.append("  Removed entries:")
            lines.extend(f"    - {c.entry.code}: {c.entry.label}" for c in removed)
        if changed:
            lines.append("  Modified entries:")
            for m in changed:
                lines.append(f"    - {m.code}:")
                lines.append(f"      FROM: {m.before.heading} / {m.before.entry.label}")
                lines.append(f"      TO:   {m.after.heading} / {m.after.entry.label}")

    if report.is_empty:
        lines.append("No differences found.")
    return lines
