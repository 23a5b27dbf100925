# tests/test_storage.py
"""Cache merge rules and the JSON file store (pure, tmp_path only)."""
from __future__ import annotations

import json
import logging

from agenda_images.models import CacheEntry
from agenda_images.storage import JsonFileStore, has_verified_entry, merge_entry


def _entry(url: str = "https://img/new.jpg", **overrides) -> CacheEntry:
    defaults = {
        "url": url,
        "provider": "Openverse",
        "page_url": "https://www.flickr.com/photos/x/1",
        "author": "Jane Doe",
        "license": "by",
        "credit": "Jane Doe · by",
        "source_url": "https://www.flickr.com/photos/x/1",
        "q": "Concert Bordeaux France",
        "updated_at": "2026-03-01T10:00:00+00:00",
    }
    defaults.update(overrides)
    return CacheEntry(**defaults)


class TestHasVerifiedEntry:
    def test_url_required(self):
        store = {"A": {"url": "https://x"}, "B": {"url": "  "}, "C": {"provider": "x"}, "D": "junk"}
        assert has_verified_entry(store, "A") is True
        assert has_verified_entry(store, "B") is False
        assert has_verified_entry(store, "C") is False
        assert has_verified_entry(store, "D") is False
        assert has_verified_entry(store, "") is False


class TestMergeEntry:
    def test_writes_uid_and_slug_alias(self):
        store = {}
        assert merge_entry(store, "E1", "concert-e1", _entry()) is True
        assert store["E1"]["url"] == "https://img/new.jpg"
        assert store["concert-e1"] == store["E1"]
        assert "score" not in store["E1"]

    def test_idempotent(self):
        store = {}
        merge_entry(store, "E1", "concert-e1", _entry())
        snapshot = json.dumps(store, sort_keys=True)

        assert merge_entry(store, "E1", "concert-e1", _entry()) is False
        assert json.dumps(store, sort_keys=True) == snapshot

    def test_verified_uid_never_overwritten(self):
        store = {"E1": {"url": "https://img/curated.jpg", "provider": "manual"}}
        assert merge_entry(store, "E1", "new-slug", _entry()) is False
        assert store["E1"]["url"] == "https://img/curated.jpg"
        # the whole merge is skipped, slug included
        assert "new-slug" not in store

    def test_unverified_uid_replaced(self):
        store = {"E1": {"url": "", "provider": "Openverse"}}
        assert merge_entry(store, "E1", "", _entry()) is True
        assert store["E1"]["url"] == "https://img/new.jpg"

    def test_existing_slug_kept(self):
        store = {"shared-slug": {"url": "https://img/other.jpg"}}
        assert merge_entry(store, "E2", "shared-slug", _entry()) is True
        assert store["E2"]["url"] == "https://img/new.jpg"
        assert store["shared-slug"]["url"] == "https://img/other.jpg"

    def test_slug_only(self):
        store = {}
        assert merge_entry(store, "", "slug-only", {"url": "https://img/a.jpg"}) is True
        assert list(store) == ["slug-only"]

    def test_no_keys(self):
        store = {}
        assert merge_entry(store, " ", "", _entry()) is False
        assert store == {}


class TestJsonFileStore:
    def test_missing_file_is_empty(self, tmp_path):
        assert JsonFileStore(tmp_path / "nope.json").load() == {}

    def test_invalid_json_is_empty(self, tmp_path, caplog):
        path = tmp_path / "event-images.json"
        path.write_text("{not json", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            assert JsonFileStore(path).load() == {}
        assert any("not valid JSON" in r.getMessage() for r in caplog.records)

    def test_non_object_is_empty(self, tmp_path):
        path = tmp_path / "event-images.json"
        path.write_text("[1, 2]", encoding="utf-8")
        assert JsonFileStore(path).load() == {}

    def test_save_creates_parent_and_keeps_accents(self, tmp_path):
        path = tmp_path / "assets" / "event-images.json"
        store = JsonFileStore(path)
        mapping = {"E1": {"url": "https://img/a.jpg", "q": "Bibliothèque Mériadeck"}}

        store.save(mapping)

        text = path.read_text(encoding="utf-8")
        assert text.endswith("\n")
        assert "Mériadeck" in text
        assert '  "E1"' in text
        assert store.load() == mapping
