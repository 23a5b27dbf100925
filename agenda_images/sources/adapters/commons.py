from __future__ import annotations

from typing import Any, Dict, List, Sequence
from urllib.parse import quote

from ...errors import SourceUnavailable
from ...models import Candidate, EventRecord, SearchQuery
from ...text import overlap_score, strip_html
from ..base import BaseImageSource
from ..http import http_get_async

COMMONS_API_URL = "https://commons.wikimedia.org/w/api.php"
COMMONS_WIKI_URL = "https://commons.wikimedia.org/wiki/"

FILE_NAMESPACE = 6
SEARCH_LIMIT = 10
# imageinfo is fetched only for the best-ranked search hits
DETAIL_LIMIT = 6


def _imageinfo(page: Dict[str, Any]) -> Dict[str, Any]:
    infos = page.get("imageinfo")
    if isinstance(infos, list) and infos and isinstance(infos[0], dict):
        return infos[0]
    return {}


def _meta_value(info: Dict[str, Any], *keys: str) -> str:
    meta = info.get("extmetadata") or {}
    for k in keys:
        v = (meta.get(k) or {}).get("value")
        if v:
            return strip_html(v)
    return ""


def commons_page_url(title: str) -> str:
    if not title:
        return ""
    return COMMONS_WIKI_URL + quote(title.replace(" ", "_"), safe=":_()")


class CommonsSource(BaseImageSource):
    """
    Wikimedia Commons file search, the first-generation fallback.

    Two calls: a full-text search in the File: namespace, then imageinfo
    (dimensions, license, artist) for the top hits.
    """

    name = "commons"
    provider = "Wikimedia Commons"
    checks_min_width = True

    async def _api(self, params: Dict[str, str]) -> Dict[str, Any]:
        res = await http_get_async(
            self.ctx.client,
            COMMONS_API_URL,
            params={"action": "query", "format": "json", "origin": "*", **params},
        )
        if not res.ok:
            raise SourceUnavailable(self.name, f"HTTP {res.status_code}")
        try:
            data = res.json()
        except ValueError as e:
            raise SourceUnavailable.from_error(self.name, e) from e
        return data if isinstance(data, dict) else {}

    async def search_files(self, text: str) -> List[str]:
        data = await self._api({
            "list": "search",
            "srnamespace": str(FILE_NAMESPACE),
            "srlimit": str(SEARCH_LIMIT),
            "srsearch": text,
        })
        hits = (data.get("query") or {}).get("search") or []
        return [h["title"] for h in hits if isinstance(h, dict) and h.get("title")]

    async def fetch_image_info(self, titles: Sequence[str]) -> List[Dict[str, Any]]:
        data = await self._api({
            "prop": "imageinfo",
            "iiprop": "url|extmetadata|size",
            # a big enough thumbnail; the original url stays in `url`
            "iiurlwidth": str(max(self.ctx.settings.min_width, 1600)),
            "titles": "|".join(titles),
        })
        pages = (data.get("query") or {}).get("pages") or {}
        return [p for p in pages.values() if isinstance(p, dict)]

    async def search(self, event: EventRecord, query: SearchQuery) -> List[Any]:
        titles = (await self.search_files(query.text))[:DETAIL_LIMIT]
        if not titles:
            return []
        return await self.fetch_image_info(titles)

    def score(self, tokens: Sequence[str], raw: Any) -> float:
        w = self.ctx.weights
        info = _imageinfo(raw)
        width = int(info.get("width") or 0)
        height = int(info.get("height") or 0)

        score = 0
        score += overlap_score(tokens, raw.get("title") or "") * w.commons_title
        score += overlap_score(tokens, _meta_value(info, "Artist")) * w.commons_artist

        if _meta_value(info, "LicenseShortName"):
            score += w.commons_license

        if width >= w.large_px or height >= w.large_px:
            score += w.commons_large_bonus
        elif width >= self.ctx.settings.min_width:
            score += w.commons_adequate_bonus

        return score

    def to_candidate(self, raw: Any) -> Candidate:
        info = _imageinfo(raw)
        author = _meta_value(info, "Artist")
        license_name = _meta_value(info, "LicenseShortName", "License")
        page_url = commons_page_url(str(raw.get("title") or ""))
        return Candidate(
            url=str(info.get("thumburl") or info.get("url") or ""),
            provider=self.provider,
            page_url=page_url,
            author=author,
            license=license_name,
            source_url=str(info.get("descriptionurl") or page_url),
            credit=" · ".join(p for p in (author, license_name) if p),
            width=int(info.get("width") or 0) or None,
            height=int(info.get("height") or 0) or None,
        )
