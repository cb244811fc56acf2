"""Tests for the command-line runners (no browser or network involved)."""

import asyncio
import json
import logging
import os

import httpx
import pytest
import yaml

from bisac_tools.config_interface import load_config
from bisac_tools.scraping import run_scrape
from bisac_tools.snapshot_store import SnapshotStore
from bisac_tools.taxonomy import run_taxonomy
from bisac_tools.taxonomy.book_metadata import GoogleBooksClient


@pytest.fixture
def config_path(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "scraper": {
                    "index_url": "https://www.bisg.org/list",
                    "category_urls": ["https://www.bisg.org/fiction"],
                },
                "storage": {"data_dir": str(tmp_path / "data")},
            }
        )
    )
    return path


@pytest.fixture
def two_snapshots(tmp_path, snapshot_factory):
    store = SnapshotStore(tmp_path / "data")
    old = store.save(snapshot_factory({"FICTION": [("FIC001000", "Action & Adventure")]}), path=tmp_path / "data" / "old.json")
    new = store.save(
        snapshot_factory({"FICTION": [("FIC001000", "Adventure")], "POETRY": [("POE000000", "General")]}),
        path=tmp_path / "data" / "bisac-data.json",
    )
    os.utime(old, (1000, 1000))
    os.utime(new, (2000, 2000))
    return old, new


def test_compare_latest_two(config_path, two_snapshots, caplog):
    caplog.set_level(logging.INFO)
    assert run_taxonomy.main(["--config", str(config_path), "compare"]) == 0
    assert "New categories: 1" in caplog.text
    assert "FROM: FICTION / Action & Adventure" in caplog.text


def test_compare_writes_json(config_path, two_snapshots, tmp_path):
    old, new = two_snapshots
    out = tmp_path / "out" / "changes.json"
    assert run_taxonomy.main(["--config", str(config_path), "compare", str(old), str(new), "--json-out", str(out)]) == 0
    data = json.loads(out.read_text(encoding="utf-8"))
    assert [c["heading"] for c in data["added_categories"]] == ["POETRY"]


def test_compare_needs_two_files(config_path, tmp_path):
    assert run_taxonomy.main(["--config", str(config_path), "compare"]) == 1


def test_lookup_code(config_path, two_snapshots, caplog):
    caplog.set_level(logging.INFO)
    assert run_taxonomy.main(["--config", str(config_path), "lookup", "--code", "poe000000"]) == 0
    assert "POETRY / General" in caplog.text
    assert run_taxonomy.main(["--config", str(config_path), "lookup", "--code", "ZZZ999999"]) == 1


def test_lookup_search(config_path, two_snapshots, caplog):
    caplog.set_level(logging.INFO)
    assert run_taxonomy.main(["--config", str(config_path), "lookup", "--search", "advent"]) == 0
    assert "FIC001000: FICTION / Adventure" in caplog.text


def test_isbn_rejects_bad_input(config_path, two_snapshots):
    assert run_taxonomy.main(["--config", str(config_path), "isbn", "12"]) == 1


def test_missing_config(tmp_path):
    assert run_taxonomy.main(["--config", str(tmp_path / "none.yaml"), "lookup", "--code", "X"]) == 1
    assert run_scrape.main(["--config", str(tmp_path / "none.yaml")]) == 1


def test_discover_urls_prefers_explicit_then_config(config_path):
    config = load_config(config_path)
    assert asyncio.run(run_scrape.discover_urls(config, ["https://www.bisg.org/poetry"])) == ["https://www.bisg.org/poetry"]
    assert asyncio.run(run_scrape.discover_urls(config)) == ["https://www.bisg.org/fiction"]


def test_scrape_arguments():
    args = run_scrape.parse_arguments(["--limit", "3", "--no-headless", "--url", "a", "b"])
    assert args.limit == 3
    assert args.no_headless
    assert args.url == ["a", "b"]


def test_isbn_writes_suggestion_and_backs_up(config_path, two_snapshots, tmp_path, monkeypatch):
    volume = {"items": [{"volumeInfo": {"title": "Collected Verse", "categories": ["Poetry"]}}]}
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=volume))
    monkeypatch.setattr(
        run_taxonomy,
        "GoogleBooksClient",
        lambda **kwargs: GoogleBooksClient(transport=transport, **kwargs),
    )
    out = tmp_path / "out" / "book_data.json"
    out.parent.mkdir()
    out.write_text("{}", encoding="utf-8")

    assert run_taxonomy.main(["--config", str(config_path), "isbn", "978-0-7851-9000-1", "-o", str(out)]) == 0

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["isbn"] == "9780785190001"
    assert data["title"] == "Collected Verse"
    assert data["best"]["entry"]["code"] == "POE000000"
    assert len(list(out.parent.glob("book_data.backup-*.json"))) == 1
