from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from .config import Settings
from .errors import SourceUnavailable
from .models import Candidate, EventRecord, SearchQuery
from .query import build_query
from .sources.base import BaseImageSource

logger = logging.getLogger(__name__)


class ImageSelector:
    """
    Picks one image for one event by walking an ordered list of sources.

    Order is priority: the first source that yields an accepted candidate
    wins and the rest are never called. A failing source counts as empty.
    """

    def __init__(self, sources: Sequence[BaseImageSource], settings: Settings) -> None:
        self.sources: List[BaseImageSource] = list(sources)
        self.settings = settings

    def build_query(self, event: EventRecord) -> SearchQuery:
        return build_query(
            event,
            country=self.settings.query_country,
            default_city=self.settings.default_city,
        )

    async def select_image(self, event: EventRecord) -> Optional[Candidate]:
        query = self.build_query(event)

        for source in self.sources:
            try:
                if not source.applies(event, query):
                    continue
                candidate = await source.pick(event, query)
            except Exception as e:
                err = e if isinstance(e, SourceUnavailable) else SourceUnavailable.from_error(source.name, e)
                logger.warning("[select] %s unavailable for %s: %s", source.name, event.key, err)
                continue

            if candidate is not None:
                logger.debug(
                    "[select] %s -> %s score=%s url=%s",
                    event.key, source.name, candidate.score, candidate.url,
                )
                return candidate

        logger.info("[select] no candidate for %s (q=%r)", event.key, query.text)
        return None
