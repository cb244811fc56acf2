#!/usr/bin/env python3
"""
Taxonomy tools runner.

Subcommands:
  compare  diff two snapshot files (default: the two newest in the data dir)
  lookup   resolve codes, headings and full labels, or search the snapshot
  isbn     suggest BISAC entries for a book via Google Books
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from bisac_tools.config_interface import DEFAULT_CONFIG_PATH, Config, load_config
from bisac_tools.logger import get_logger
from bisac_tools.snapshot_store import SnapshotFormatError, SnapshotStore
from bisac_tools.taxonomy.book_metadata import GoogleBooksClient, InvalidIsbnError, suggest_for_isbn
from bisac_tools.taxonomy.differ import DiffInputError, diff_snapshot_files, render_change_report
from bisac_tools.taxonomy.lookup import (
    code_for_full_label,
    entries_for_heading,
    full_label_for_code,
    search,
)

logger = get_logger(__name__)


def _store(config: Config) -> SnapshotStore:
    return SnapshotStore(config.storage.data_dir, config.storage.snapshot_filename)


def run_compare(config: Config, args: argparse.Namespace) -> int:
    store = _store(config)
    if args.old and args.new:
        old_path, new_path = args.old, args.new
    elif args.old or args.new:
        logger.error("Give both OLD and NEW snapshot files, or neither")
        return 1
    else:
        files = store.list_snapshots()
        if len(files) < 2:
            logger.error(f"Need at least two snapshot files in {store.data_dir} to compare, found {len(files)}")
            return 1
        new_path, old_path = files[0], files[1]

    logger.info(f"Old file: {Path(old_path).name}")
    logger.info(f"New file: {Path(new_path).name}")
    try:
        report = diff_snapshot_files(old_path, new_path, store)
    except DiffInputError as e:
        logger.error(f"Cannot compare snapshots: {e}")
        return 1

    for line in render_change_report(report):
        logger.info(line)

    if args.json_out:
        args.json_out.parent.mkdir(parents=True, exist_ok=True)
        args.json_out.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Wrote change report to {args.json_out}")
    return 0


def run_lookup(config: Config, args: argparse.Namespace) -> int:
    store = _store(config)
    try:
        snapshot = store.load(args.path)
    except (FileNotFoundError, SnapshotFormatError) as e:
        logger.error(f"Cannot load snapshot: {e}")
        return 1

    if args.code:
        label = full_label_for_code(snapshot, args.code)
        if label is None:
            return 1
        logger.info(f"{args.code.strip().upper()}: {label}")
    elif args.heading:
        entries = entries_for_heading(snapshot, args.heading)
        if not entries:
            return 1
        for entry in entries:
            logger.info(f"{entry.code}: {entry.label}")
    elif args.label:
        code = code_for_full_label(snapshot, args.label)
        if code is None:
            return 1
        logger.info(f"{args.label}: {code}")
    else:
        hits = search(snapshot, args.search)
        logger.info(f"{len(hits)} match(es) for '{args.search}'")
        for hit in hits:
            logger.info(f"{hit.entry.code}: {hit.full_label}")
    return 0


def run_isbn(config: Config, args: argparse.Namespace) -> int:
    store = _store(config)
    try:
        snapshot = store.load(args.path)
    except (FileNotFoundError, SnapshotFormatError) as e:
        logger.error(f"Cannot load snapshot: {e}")
        return 1

    client = GoogleBooksClient(api_url=config.book_metadata.api_url, timeout=config.book_metadata.timeout)
    try:
        suggestion = asyncio.run(suggest_for_isbn(args.isbn, snapshot, client))
    except InvalidIsbnError as e:
        logger.error(str(e))
        return 1

    if suggestion.title is None:
        logger.info(f"No book metadata found for ISBN {suggestion.isbn}")
        return 0

    logger.info(f"Title: {suggestion.title}")
    if not suggestion.candidates:
        logger.info("No BISAC candidates found for this book")
        return 0
    for candidate in suggestion.candidates:
        logger.info(f"  {candidate.entry.code}  {candidate.full_label}")
    if suggestion.best is not None:
        logger.info(f"Best match: {suggestion.best.entry.code}  {suggestion.best.full_label}")

    if args.output:
        if args.output.exists():
            backup = store.backup(args.output)
            logger.info(f"Backed up {args.output} to {backup.name}")
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(suggestion.model_dump_json(indent=2), encoding="utf-8")
        logger.info(f"Wrote suggestion to {args.output}")
    return 0


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Compare, look up and suggest BISAC subject headings",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bisac-taxonomy compare
  bisac-taxonomy compare data/bisac-old.json data/bisac-data.json --json-out out/changes.json
  bisac-taxonomy lookup --code FIC001000
  bisac-taxonomy lookup --label "FICTION / Action & Adventure"
  bisac-taxonomy isbn 978-0-7851-9000-1
  bisac-taxonomy isbn 978-0-7851-9000-1 -o out/book_data.json
        """,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to config.yaml (default: {DEFAULT_CONFIG_PATH})",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    compare = sub.add_parser("compare", help="Compare two snapshot files")
    compare.add_argument("old", type=Path, nargs="?", default=None, help="Older snapshot file")
    compare.add_argument("new", type=Path, nargs="?", default=None, help="Newer snapshot file")
    compare.add_argument("--json-out", type=Path, default=None, help="Also write the report as JSON")

    lookup = sub.add_parser("lookup", help="Look up codes, headings and labels")
    lookup.add_argument("--path", "-p", type=Path, default=None, help="Snapshot file (default: from config)")
    group = lookup.add_mutually_exclusive_group(required=True)
    group.add_argument("--code", help="Full label for a code")
    group.add_argument("--heading", help="All entries of a heading")
    group.add_argument("--label", help="Code for a 'HEADING / label' string")
    group.add_argument("--search", help="Entries whose code or label contains the text")

    isbn = sub.add_parser("isbn", help="Suggest BISAC entries for an ISBN")
    isbn.add_argument("isbn", help="ISBN-10 or ISBN-13, hyphens optional")
    isbn.add_argument("--path", "-p", type=Path, default=None, help="Snapshot file (default: from config)")
    isbn.add_argument("--output", "-o", type=Path, default=None, help="Write the suggestion as JSON to this file")

    return parser.parse_args(argv)


COMMANDS = {
    "compare": run_compare,
    "lookup": run_lookup,
    "isbn": run_isbn,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Set main entry point for the taxonomy tools."""
    args = parse_arguments(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        config = load_config(args.config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        return 1

    try:
        return COMMANDS[args.command](config, args)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        return 2


if __name__ == "__main__":
    sys.exit(main())
