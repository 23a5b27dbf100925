from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from ...errors import ConfigurationError, SourceUnavailable
from ...models import Candidate, EventRecord, SearchQuery, image_url_from_field
from ..base import BaseImageSource
from ..http import http_get_async

logger = logging.getLogger(__name__)

OPENAGENDA_API_BASE = "https://api.openagenda.com/v2"

# Field order matters: first non-empty wins.
_IMAGE_FIELDS = ("image", "thumbnail", "originalImage")


def _openagenda_url(value: Any) -> str:
    # v2 image objects are {"base": "https://cdn.../", "filename": "abc.jpg", ...}
    if isinstance(value, dict) and value.get("base") and value.get("filename"):
        return f"{value['base']}{value['filename']}"
    return image_url_from_field(value)


def pick_openagenda_image(evt: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """Return {"url", "credit"} from an OpenAgenda event payload, or None."""
    location = evt.get("location") if isinstance(evt.get("location"), dict) else {}

    url = ""
    for key in _IMAGE_FIELDS:
        url = _openagenda_url(evt.get(key))
        if url:
            break
    if not url:
        url = _openagenda_url(location.get("image"))
    if not url:
        return None

    credit = evt.get("imageCredits") or location.get("imageCredits") or ""
    return {"url": url, "credit": str(credit).strip()}


class OpenAgendaSource(BaseImageSource):
    """
    Official picture from the OpenAgenda event the Bordeaux record was synced from.

    Needs OFFICIAL_IMAGES=1 and OPENAGENDA_KEY; the composite key is
    (originagenda_uid, uid).
    """

    name = "openagenda"
    provider = "OpenAgenda"

    def __init__(self, ctx) -> None:
        super().__init__(ctx)
        self._warned = False

    def applies(self, event: EventRecord, query: SearchQuery) -> bool:
        settings = self.ctx.settings
        if not settings.official_images:
            return False
        if not settings.openagenda_key:
            if not self._warned:
                err = ConfigurationError("OFFICIAL_IMAGES=1 but OPENAGENDA_KEY is empty")
                logger.warning("[openagenda] disabled: %s", err)
                self._warned = True
            return False
        return bool(event.originagenda_uid and event.uid)

    async def _fetch(self, path: str) -> Optional[Dict[str, Any]]:
        res = await http_get_async(
            self.ctx.client,
            f"{OPENAGENDA_API_BASE}/{path}",
            headers={"key": self.ctx.settings.openagenda_key},
        )
        if not res.ok:
            logger.debug("[openagenda] %s -> HTTP %s", path, res.status_code)
            return None
        try:
            data = res.json()
        except ValueError as e:
            raise SourceUnavailable.from_error(self.name, e) from e
        if not isinstance(data, dict):
            return None
        evt = data.get("event") or data
        return evt if isinstance(evt, dict) else None

    async def fetch_event(self, agenda_uid: str, event_uid: str) -> Optional[Dict[str, Any]]:
        return await self._fetch(f"agendas/{quote(agenda_uid)}/events/{quote(event_uid)}")

    async def fetch_event_by_ext(
        self, agenda_uid: str, ext_key: str, ext_value: str
    ) -> Optional[Dict[str, Any]]:
        return await self._fetch(
            f"agendas/{quote(agenda_uid)}/events/ext/{quote(ext_key)}/{quote(ext_value)}"
        )

    async def search(self, event: EventRecord, query: SearchQuery) -> List[Any]:
        evt = await self.fetch_event(event.originagenda_uid, event.uid)

        # Bordeaux uids are not always OpenAgenda uids; try the external-id route.
        ext_key = self.ctx.settings.openagenda_ext_key
        if (evt is None or not pick_openagenda_image(evt)) and ext_key:
            evt = await self.fetch_event_by_ext(event.originagenda_uid, ext_key, event.uid)

        if evt is None or not pick_openagenda_image(evt):
            return []
        return [evt]

    def to_candidate(self, raw: Any) -> Candidate:
        img = pick_openagenda_image(raw) or {"url": "", "credit": ""}
        page_url = str(raw.get("canonicalUrl") or raw.get("url") or "")
        return Candidate(
            url=img["url"],
            provider=self.provider,
            page_url=page_url,
            credit=img["credit"],
            source_url=page_url,
        )
