"""Tests for snapshot persistence."""

import json
import os
from datetime import datetime, timezone

import pytest

from bisac_tools.snapshot_store import SnapshotFormatError, SnapshotStore, snapshot_to_dict


def test_save_and_load_round_trip(tmp_path, sample_snapshot):
    store = SnapshotStore(tmp_path / "data")
    path = store.save(sample_snapshot)

    assert path == tmp_path / "data" / "bisac-data.json"
    assert store.load() == sample_snapshot


def test_saved_layout(tmp_path, sample_snapshot):
    store = SnapshotStore(tmp_path)
    data = json.loads(store.save(sample_snapshot).read_text(encoding="utf-8"))

    assert data["date"] == "2024-01-01"
    assert data["timestamp"] == int(datetime(2024, 1, 1, tzinfo=timezone.utc).timestamp() * 1000)
    assert data["categories"][0]["heading"] == "FICTION"
    assert data["categories"][0]["entries"][1] == {"code": "FIC001000", "label": "Action & Adventure"}


def test_save_backs_up_existing_file(tmp_path, sample_snapshot, snapshot_factory):
    store = SnapshotStore(tmp_path)
    store.save(snapshot_factory({"FICTION": [("FIC000000", "General")]}))
    store.save(sample_snapshot)

    backups = list(tmp_path.glob("bisac-data.backup-*.json"))
    assert len(backups) == 1
    assert store.load(backups[0]).category_count == 1
    assert store.load().category_count == 3


def test_save_without_backup(tmp_path, sample_snapshot):
    store = SnapshotStore(tmp_path)
    store.save(sample_snapshot)
    store.save(sample_snapshot, backup=False)
    assert list(tmp_path.glob("*.backup-*")) == []


def test_load_legacy_format(tmp_path):
    legacy = {
        "timestamp": 1700000000000,
        "date": "2023-11-14",
        "categories": [
            {
                "heading": "FICTION",
                "notes": ["Use subjects in this section"],
                "subjects": [{"code": "FIC000000", "label": "General"}],
            }
        ],
    }
    path = tmp_path / "bisac-old.json"
    path.write_text(json.dumps(legacy), encoding="utf-8")

    snapshot = SnapshotStore(tmp_path).load(path)

    assert snapshot.generated_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert snapshot.categories[0].entries[0].code == "FIC000000"
    assert snapshot.categories[0].notes == ("Use subjects in this section",)


def test_load_bare_category_list_uses_file_time(tmp_path):
    path = tmp_path / "bare.json"
    path.write_text(json.dumps([{"heading": "POETRY", "subjects": [{"code": "POE000000", "label": "General"}]}]))
    os.utime(path, (1700000000, 1700000000))

    snapshot = SnapshotStore(tmp_path).load(path)

    assert snapshot.generated_at == datetime.fromtimestamp(1700000000, tz=timezone.utc)
    assert snapshot.entry_count == 1


@pytest.mark.parametrize(
    "content",
    [
        "not json",
        json.dumps({"timestamp": 0}),
        json.dumps({"timestamp": 0, "categories": [{"heading": "X", "entries": [{"code": "bad", "label": "x"}]}]}),
        json.dumps({"timestamp": 0, "categories": [{"notes": []}]}),
        json.dumps("a string"),
    ],
)
def test_corrupt_files(tmp_path, content):
    path = tmp_path / "bad.json"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(SnapshotFormatError):
        SnapshotStore(tmp_path).load(path)


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        SnapshotStore(tmp_path).load(tmp_path / "nope.json")


def test_list_snapshots_newest_first(tmp_path, sample_snapshot):
    store = SnapshotStore(tmp_path)
    older = store.save(sample_snapshot, path=tmp_path / "a.json")
    newer = store.save(sample_snapshot, path=tmp_path / "b.json")
    os.utime(older, (1000, 1000))
    os.utime(newer, (2000, 2000))
    (tmp_path / "notes.txt").write_text("ignored")

    assert store.list_snapshots() == [newer, older]
    assert store.latest() == newer
    assert SnapshotStore(tmp_path / "missing").latest() is None


def test_snapshot_to_dict_converts_to_utc(snapshot_factory):
    from datetime import timedelta

    when = datetime(2024, 1, 1, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
    data = snapshot_to_dict(snapshot_factory({"A": [("AAA000000", "x")]}, when=when))
    assert data["date"] == "2024-01-02"
