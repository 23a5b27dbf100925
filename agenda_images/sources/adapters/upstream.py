from __future__ import annotations

from typing import Any, List

from ...models import Candidate, EventRecord, SearchQuery
from ..base import BaseImageSource


class UpstreamFieldSource(BaseImageSource):
    """The record's own location_image, when the feed already has one. No network."""

    name = "upstream"
    provider = "Bordeaux Metropole"

    def applies(self, event: EventRecord, query: SearchQuery) -> bool:
        return event.has_image

    async def search(self, event: EventRecord, query: SearchQuery) -> List[Any]:
        url = event.image_url
        return [url] if url else []

    def to_candidate(self, raw: Any) -> Candidate:
        return Candidate(url=str(raw), provider=self.provider, source_url=str(raw))
