from __future__ import annotations

from typing import Any, Dict, List, Sequence

from ...errors import SourceUnavailable
from ...models import Candidate, EventRecord, SearchQuery
from ...text import overlap_score
from ..base import BaseImageSource
from ..http import http_get_async

OPENVERSE_IMAGES_URL = "https://api.openverse.org/v1/images/"


def _creator(r: Dict[str, Any]) -> str:
    return str(r.get("creator") or r.get("creator_name") or "")


def _tags_text(r: Dict[str, Any]) -> str:
    tags = r.get("tags")
    if not isinstance(tags, list):
        return ""
    names = []
    for t in tags:
        name = t.get("name") if isinstance(t, dict) else t
        if name:
            names.append(str(name))
    return " ".join(names)


def _int_or_zero(v: Any) -> int:
    try:
        return int(v or 0)
    except (TypeError, ValueError):
        return 0


class OpenverseSource(BaseImageSource):
    """Openly licensed media search (Openverse API, anonymous tier)."""

    name = "openverse"
    provider = "Openverse"
    checks_min_width = True

    async def search(self, event: EventRecord, query: SearchQuery) -> List[Any]:
        settings = self.ctx.settings
        res = await http_get_async(
            self.ctx.client,
            OPENVERSE_IMAGES_URL,
            params={
                "q": query.text,
                "page_size": str(settings.openverse_effective_page_size),
                "license": ",".join(settings.allowed_licenses),
            },
        )
        if not res.ok:
            raise SourceUnavailable(self.name, f"HTTP {res.status_code}")
        try:
            data = res.json()
        except ValueError as e:
            raise SourceUnavailable.from_error(self.name, e) from e

        results = data.get("results") if isinstance(data, dict) else None
        return [r for r in results if isinstance(r, dict)] if isinstance(results, list) else []

    def score(self, tokens: Sequence[str], raw: Any) -> float:
        w = self.ctx.weights
        min_width = self.ctx.settings.min_width
        preferred = self.ctx.settings.preferred_providers

        creator = _creator(raw)
        provider = str(raw.get("provider") or raw.get("source") or "").lower()
        width = _int_or_zero(raw.get("width"))
        height = _int_or_zero(raw.get("height"))

        score = 0
        score += overlap_score(tokens, raw.get("title") or "") * w.title
        score += overlap_score(tokens, creator) * w.creator
        score += overlap_score(tokens, _tags_text(raw)) * w.tags

        if width >= w.large_px or height >= w.large_px:
            score += w.large_bonus
        elif width >= min_width:
            score += w.adequate_bonus

        if provider in preferred:
            score += w.preferred_provider

        # clear attribution
        if creator:
            score += w.attribution
        if raw.get("license"):
            score += w.attribution
        if raw.get("foreign_landing_url"):
            score += w.attribution

        return score

    def to_candidate(self, raw: Any) -> Candidate:
        creator = _creator(raw)
        license_code = str(raw.get("license") or "")
        return Candidate(
            url=str(raw.get("url") or raw.get("thumbnail") or ""),
            provider=str(raw.get("provider") or self.provider),
            page_url=str(raw.get("foreign_landing_url") or ""),
            author=creator,
            license=license_code,
            source_url=str(raw.get("source") or ""),
            credit=" · ".join(p for p in (creator, license_code) if p),
            width=_int_or_zero(raw.get("width")) or None,
            height=_int_or_zero(raw.get("height")) or None,
        )
