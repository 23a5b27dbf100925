# tests/test_feed.py
"""Bordeaux agenda feed: paging, client-side filter, schema-drift retry and fatal errors."""
from __future__ import annotations

import json

import pytest
import requests

from agenda_images.errors import FatalIngestionError
from agenda_images.feed import AgendaFeed
from agenda_images.sources.http import HttpResult

BASE = "https://datahub.example/records"


class FakeApi:
    """Serves `rows` in pages and records every call's params."""

    def __init__(self, rows, page_cap=None):
        self.rows = rows
        self.page_cap = page_cap
        self.calls = []

    def __call__(self, url, params=None, **kwargs):
        params = dict(params or {})
        self.calls.append(params)
        if "where" in params:
            uid = params["where"].split('"')[1]
            found = [r for r in self.rows if r.get("uid") == uid][:1]
            return _ok({"results": found})
        offset, limit = int(params["offset"]), int(params["limit"])
        if self.page_cap is not None:
            limit = min(limit, self.page_cap)
        return _ok({"total_count": len(self.rows), "results": self.rows[offset:offset + limit]})


def _ok(payload) -> HttpResult:
    return HttpResult(url=BASE, status_code=200, text=json.dumps(payload))


def _rows(n, image=None):
    return [{"uid": f"E{i}", "title_fr": f"Event {i}", "location_image": image} for i in range(n)]


class TestPaging:
    def test_walks_all_pages_in_order(self):
        api = FakeApi(_rows(250))
        feed = AgendaFeed(BASE, fetch=api)

        uids = [r["uid"] for r in feed.iter_rows()]

        assert uids == [f"E{i}" for i in range(250)]
        assert [c["offset"] for c in api.calls] == ["0", "100", "200", "250"]
        assert all(c["limit"] == "100" and c["order_by"] == "updatedat desc" for c in api.calls)
        assert all("select" not in c for c in api.calls)

    def test_short_pages_still_advance(self):
        api = FakeApi(_rows(7), page_cap=3)
        assert len(list(AgendaFeed(BASE, fetch=api).iter_rows())) == 7

    def test_safety_stop(self):
        api = FakeApi(_rows(1000))
        rows = list(AgendaFeed(BASE, fetch=api).iter_rows(max_scanned=250))
        # stops once more than max_scanned rows have been read
        assert len(rows) == 300
        assert len(api.calls) == 3


class TestMissingImages:
    def test_filters_and_caps(self):
        rows = [
            {"uid": "A", "location_image": "https://img/a.jpg"},
            {"uid": "B", "location_image": None},
            {"uid": "C", "location_image": {"url": "https://img/c.jpg"}},
            {"uid": "D", "location_image": ""},
            {"uid": "E", "location_image": []},
            {"uid": "F"},
        ]
        feed = AgendaFeed(BASE, fetch=FakeApi(rows))

        assert [e.uid for e in feed.events_missing_images(10)] == ["B", "D", "E", "F"]
        assert [e.uid for e in feed.events_missing_images(2)] == ["B", "D"]

    def test_zero_max_events_makes_no_request(self):
        api = FakeApi(_rows(3))
        assert AgendaFeed(BASE, fetch=api).events_missing_images(0) == []
        assert api.calls == []


class TestFetchOne:
    def test_found(self):
        api = FakeApi(_rows(5, image="https://img/x.jpg"))
        ev = AgendaFeed(BASE, fetch=api).fetch_one("E3")
        assert ev is not None
        assert ev.uid == "E3"
        assert ev.has_image is True
        assert api.calls[0]["where"] == 'uid="E3"'

    def test_not_found(self):
        assert AgendaFeed(BASE, fetch=FakeApi([])).fetch_one("nope") is None


class TestErrors:
    def test_unknown_field_retry_without_select(self):
        calls = []

        def fetch(url, params=None, **kwargs):
            calls.append(dict(params))
            if "select" in params:
                return HttpResult(url=url, status_code=400, text='{"message": "Unknown field: image_url"}')
            return _ok({"results": [{"uid": "E1"}]})

        data = AgendaFeed(BASE, fetch=fetch)._get({"select": "uid,image_url", "limit": "1"})

        assert data["results"] == [{"uid": "E1"}]
        assert calls == [{"select": "uid,image_url", "limit": "1"}, {"limit": "1"}]

    def test_http_error_is_fatal(self):
        def fetch(url, params=None, **kwargs):
            return HttpResult(url=url, status_code=503, text="Service Unavailable")

        with pytest.raises(FatalIngestionError, match="503"):
            list(AgendaFeed(BASE, fetch=fetch).iter_rows())

    def test_transport_error_is_fatal(self):
        def fetch(url, params=None, **kwargs):
            raise requests.ConnectionError("name resolution failed")

        with pytest.raises(FatalIngestionError) as exc:
            AgendaFeed(BASE, fetch=fetch).fetch_page(0)
        assert isinstance(exc.value.original_error, requests.ConnectionError)

    def test_invalid_json_is_fatal(self):
        def fetch(url, params=None, **kwargs):
            return HttpResult(url=url, status_code=200, text="<html>")

        with pytest.raises(FatalIngestionError):
            AgendaFeed(BASE, fetch=fetch).fetch_page(0)
