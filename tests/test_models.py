# tests/test_models.py
"""Image-field normalization and EventRecord construction (pure, no network)."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from agenda_images.models import (
    Candidate,
    EventRecord,
    SearchQuery,
    image_url_from_field,
    is_missing_image,
)


class TestIsMissingImage:
    @pytest.mark.parametrize("value", [
        None,
        "",
        "   ",
        [],
        {},
        {"title": "no url here"},
        [{}],
        [""],
    ])
    def test_missing(self, value):
        assert is_missing_image(value) is True

    @pytest.mark.parametrize("value", [
        "http://x",
        [{"url": "http://x"}],
        {"url": "http://x"},
        {"href": "http://x"},
        ["http://x"],
    ])
    def test_present(self, value):
        assert is_missing_image(value) is False


class TestImageUrlFromField:
    def test_string_is_stripped(self):
        assert image_url_from_field("  https://img/a.jpg ") == "https://img/a.jpg"

    def test_list_uses_first_element(self):
        value = [{"url": "https://img/1.jpg"}, {"url": "https://img/2.jpg"}]
        assert image_url_from_field(value) == "https://img/1.jpg"

    def test_url_preferred_over_href(self):
        assert image_url_from_field({"url": "https://a", "href": "https://b"}) == "https://a"

    def test_unknown_types(self):
        assert image_url_from_field(42) == ""
        assert image_url_from_field(True) == ""


class TestEventRecordFromRow:
    def test_field_fallbacks(self):
        ev = EventRecord.from_row({
            "uid": 12345,
            "title_en": "Concert",
            "location": "Rocher de Palmer",
            "city": "Cenon",
            "location_image": None,
        })
        assert ev.uid == "12345"
        assert ev.title == "Concert"
        assert ev.location_name == "Rocher de Palmer"
        assert ev.location_city == "Cenon"
        assert ev.has_image is False

    def test_title_fr_preferred(self):
        ev = EventRecord.from_row({"title_fr": "Fête", "title": "Party", "title_en": "Party EN"})
        assert ev.title == "Fête"

    def test_raw_row_kept_and_record_frozen(self):
        row = {"uid": "E1", "slug": "e-1", "keywords_fr": ["jazz"]}
        ev = EventRecord.from_row(row)
        assert ev.raw["keywords_fr"] == ["jazz"]
        assert ev.key == "E1"
        with pytest.raises(Exception):
            ev.uid = "other"

    def test_key_falls_back_to_slug(self):
        assert EventRecord.from_row({"slug": "only-slug"}).key == "only-slug"

    def test_image_shapes(self):
        ev = EventRecord.from_row({"uid": "E1", "location_image": [{"url": "https://img/x.jpg"}]})
        assert ev.has_image is True
        assert ev.image_url == "https://img/x.jpg"


class TestCandidateToEntry:
    def test_entry_has_trace_and_no_score(self):
        cand = Candidate(
            url="https://img/x.jpg",
            provider="Openverse",
            author="Jane",
            license="by",
            credit="Jane · by",
            width=3000,
            score=17,
        )
        now = datetime(2026, 3, 1, 12, 0, 0, 123456, tzinfo=timezone.utc)
        entry = cand.to_entry(SearchQuery(text="Concert Bordeaux France"), now=now)
        row = entry.model_dump()

        assert "score" not in row
        assert row["q"] == "Concert Bordeaux France"
        assert row["updated_at"] == "2026-03-01T12:00:00+00:00"
        assert row["url"] == "https://img/x.jpg"
        assert row["width"] == 3000
        assert row["height"] is None
