from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

import requests

from .config import BORDEAUX_API_BASE
from .errors import FatalIngestionError
from .models import EventRecord, is_missing_image
from .sources.http import HttpResult, http_get

logger = logging.getLogger(__name__)

Fetcher = Callable[..., HttpResult]

PAGE_SIZE = 100
# Stop paging after this many rows even if the API keeps answering.
MAX_SCANNED = 20000


class AgendaFeed:
    """
    Bordeaux Metropole `met_agenda` records (Opendatasoft Explore API v2.1).

    No `select`: the dataset schema moves, and an unknown field in `select`
    turns the whole request into an HTTP 400. Filtering happens client-side.
    """

    def __init__(self, base_url: str = BORDEAUX_API_BASE, fetch: Fetcher = http_get) -> None:
        self.base_url = base_url
        self._fetch = fetch

    def _get(self, params: Dict[str, Any]) -> Dict[str, Any]:
        try:
            res = self._fetch(self.base_url, params=params)
        except requests.RequestException as e:
            raise FatalIngestionError(f"Bordeaux API unreachable: {e}", original_error=e) from e

        # Schema drift: retry once without `select`.
        if res.status_code == 400 and "Unknown field" in (res.text or "") and "select" in params:
            retry = {k: v for k, v in params.items() if k != "select"}
            logger.warning("[feed] unknown field in select, retrying without it")
            try:
                res = self._fetch(self.base_url, params=retry)
            except requests.RequestException as e:
                raise FatalIngestionError(f"Bordeaux API unreachable: {e}", original_error=e) from e
            if not res.ok:
                raise FatalIngestionError(
                    f"Bordeaux API error {res.status_code} after retry: {res.text[:500]}"
                )

        if not res.ok:
            raise FatalIngestionError(f"Bordeaux API error {res.status_code}: {res.text[:500]}")

        try:
            data = res.json()
        except ValueError as e:
            raise FatalIngestionError(f"Bordeaux API returned invalid JSON: {e}", original_error=e) from e
        if not isinstance(data, dict):
            raise FatalIngestionError("Bordeaux API returned a non-object payload")
        return data

    def fetch_page(self, offset: int, limit: int = PAGE_SIZE) -> List[Mapping[str, Any]]:
        data = self._get({
            "limit": str(limit),
            "offset": str(offset),
            "order_by": "updatedat desc",
        })
        rows = data.get("results") or []
        return [r for r in rows if isinstance(r, Mapping)]

    def iter_rows(self, max_scanned: int = MAX_SCANNED) -> Iterator[Mapping[str, Any]]:
        """Lazy, restartable walk over the dataset (every call starts at offset 0)."""
        offset = 0
        while True:
            rows = self.fetch_page(offset)
            if not rows:
                return
            yield from rows
            offset += len(rows)
            if offset > max_scanned:
                logger.warning("[feed] safety stop after %d rows", offset)
                return

    def iter_events(self, max_scanned: int = MAX_SCANNED) -> Iterator[EventRecord]:
        for row in self.iter_rows(max_scanned=max_scanned):
            yield EventRecord.from_row(row)

    def events_missing_images(self, max_events: int) -> List[EventRecord]:
        out: List[EventRecord] = []
        if max_events <= 0:
            return out
        for row in self.iter_rows():
            if is_missing_image(row.get("location_image")):
                out.append(EventRecord.from_row(row))
                if len(out) >= max_events:
                    break
        return out

    def fetch_one(self, uid: str) -> Optional[EventRecord]:
        data = self._get({"where": f'uid="{uid}"', "limit": "1"})
        rows = data.get("results") or []
        if not rows or not isinstance(rows[0], Mapping):
            return None
        return EventRecord.from_row(rows[0])
