import json
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, List, Optional, Union

from pydantic import ValidationError

from bisac_tools.data_models import Category, Entry, Snapshot, ensure_utc
from bisac_tools.logger import get_logger

logger = get_logger(__name__)

DEFAULT_SNAPSHOT_FILENAME = "bisac-data.json"


class SnapshotFormatError(Exception):
    """Raised when a snapshot file cannot be parsed into a Snapshot."""

    def __init__(self, path: Union[str, Path], message: str) -> None:
        """Initialize the exception."""
        self.path = Path(path)
        super().__init__(f"Invalid snapshot file {path}: {message}")


def snapshot_to_dict(snapshot: Snapshot) -> dict[str, Any]:
    """Serialize a snapshot to the on-disk JSON layout."""
    generated_at = snapshot.generated_at.astimezone(timezone.utc)
    return {
        "generated_at": generated_at.isoformat(),
        "timestamp": int(generated_at.timestamp() * 1000),
        "date": generated_at.date().isoformat(),
        "categories": [
            {
                "heading": category.heading,
                "notes": list(category.notes),
                "entries": [{"code": e.code, "label": e.label} for e in category.entries],
            }
            for category in snapshot.categories
        ],
    }


def snapshot_from_dict(data: Any, default_time: Optional[datetime] = None) -> Snapshot:
    """
    Build a Snapshot from parsed JSON.

    Accepts the current layout as well as older files that use ``subjects``
    instead of ``entries``, carry only a millisecond ``timestamp`` or a
    ``date``, or are a bare list of categories.
    """
    if isinstance(data, list):
        data = {"categories": data}
    if not isinstance(data, dict):
        raise ValueError(f"expected an object or a list, got {type(data).__name__}")

    raw_categories = data.get("categories")
    if not isinstance(raw_categories, list):
        raise ValueError("missing 'categories' list")

    if data.get("generated_at") is not None:
        generated_at = ensure_utc(data["generated_at"])
    elif data.get("timestamp") is not None:
        generated_at = ensure_utc(data["timestamp"])
    elif data.get("date"):
        generated_at = ensure_utc(data["date"])
    elif default_time is not None:
        generated_at = ensure_utc(default_time)
    else:
        raise ValueError("no 'generated_at', 'timestamp' or 'date' field")

    categories = []
    for raw in raw_categories:
        raw_entries = raw.get("entries", raw.get("subjects", []))
        categories.append(
            Category(
                heading=raw["heading"],
                notes=tuple(raw.get("notes", [])),
                entries=tuple(Entry(code=e["code"], label=e["label"]) for e in raw_entries),
            )
        )
    return Snapshot(generated_at=generated_at, categories=tuple(categories))


class SnapshotStore:
    """Reads and writes snapshot JSON files under one data directory."""

    def __init__(self, data_dir: Union[str, Path] = "data", filename: str = DEFAULT_SNAPSHOT_FILENAME) -> None:
        """Initialize the store; the directory is created on first save."""
        self.data_dir = Path(data_dir)
        self.filename = filename

    @property
    def default_path(self) -> Path:
        return self.data_dir / self.filename

    def save(self, snapshot: Snapshot, path: Union[str, Path, None] = None, backup: bool = True) -> Path:
        """
        Write ``snapshot`` as JSON and return the path written.

        An existing file at the target path is first copied to a backup next to
        it when ``backup`` is true.
        """
        target = Path(path) if path is not None else self.default_path
        target.parent.mkdir(parents=True, exist_ok=True)

        if backup and target.exists():
            backup_path = self.backup(target)
            logger.info("Backed up previous snapshot to %s", backup_path)

        with open(target, "w", encoding="utf-8") as f:
            json.dump(snapshot_to_dict(snapshot), f, indent=2, ensure_ascii=False)

        logger.info(
            "Saved snapshot with %d categories and %d entries to %s",
            snapshot.category_count, snapshot.entry_count, target,
        )
        return target

    def backup(self, path: Union[str, Path]) -> Path:
        """Copy ``path`` to ``<stem>.backup-<timestamp><suffix>`` in the same directory."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Cannot create backup: file not found: {path}")
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
        backup_path = path.with_name(f"{path.stem}.backup-{stamp}{path.suffix}")
        shutil.copy2(path, backup_path)
        return backup_path

    def load(self, path: Union[str, Path, None] = None) -> Snapshot:
        """Load a snapshot file; raises FileNotFoundError or SnapshotFormatError."""
        source = Path(path) if path is not None else self.default_path
        if not source.exists():
            raise FileNotFoundError(f"Snapshot file not found: {source}")

        try:
            with open(source, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SnapshotFormatError(source, f"not valid JSON ({e})") from e

        mtime = datetime.fromtimestamp(os.path.getmtime(source), tz=timezone.utc)
        try:
            snapshot = snapshot_from_dict(data, default_time=mtime)
        except (ValidationError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise SnapshotFormatError(source, str(e)) from e

        logger.debug("Loaded %d categories from %s", snapshot.category_count, source)
        return snapshot

    def list_snapshots(self, include_backups: bool = True) -> List[Path]:
        """Snapshot JSON files in the data directory, newest first by modification time."""
        if not self.data_dir.is_dir():
            return []
        files = [p for p in self.data_dir.glob("*.json") if p.is_file()]
        if not include_backups:
            files = [p for p in files if ".backup-" not in p.name]
        files.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return files

    def latest(self) -> Optional[Path]:
        """Most recently modified snapshot file, or None."""
        files = self.list_snapshots()
        return files[0] if files else None
