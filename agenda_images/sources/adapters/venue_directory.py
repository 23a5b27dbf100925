from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Set
from urllib.parse import parse_qs, urljoin, urlparse

import httpx
from bs4 import BeautifulSoup

from ...errors import SourceUnavailable
from ...models import Candidate, EventRecord, SearchQuery
from ...text import normalize, overlap_score, tokenize
from ..base import BaseImageSource
from ..http import HttpResult, http_get_async
from ..types import SourceContext

logger = logging.getLogger(__name__)

PageFetcher = Callable[[str], Awaitable[Optional[HttpResult]]]

# Social-preview tags, most specific first.
_PREVIEW_META = (
    "og:image",
    "og:image:url",
    "og:image:secure_url",
    "twitter:image",
    "twitter:image:src",
)

# Too common in French venue names to identify one.
_STOPWORDS = frozenset({"des", "les", "aux", "sur", "sous", "pour", "avec", "par", "une", "rue"})


# ---------------------------------------
# HTML helpers (pure)
# ---------------------------------------

def extract_preview_image(html: str, page_url: str) -> str:
    """og:image / twitter:image of a page, resolved against page_url ("" if none)."""
    soup = BeautifulSoup(html or "", "html.parser")
    found = {}
    for meta in soup.find_all("meta"):
        prop = (meta.get("property") or meta.get("name") or "").strip().lower()
        content = (meta.get("content") or "").strip()
        if prop in _PREVIEW_META and content and prop not in found:
            found[prop] = content
    for prop in _PREVIEW_META:
        if prop in found:
            return urljoin(page_url, found[prop])
    return ""


def find_venue_link(html: str, base_url: str, venue_tokens: Iterable[str]) -> Optional[str]:
    """Link whose anchor text shares the most tokens with the venue (at least one)."""
    tokens = list(venue_tokens)
    if not tokens:
        return None

    soup = BeautifulSoup(html or "", "html.parser")
    best_url: Optional[str] = None
    best_score = 0
    for a in soup.find_all("a", href=True):
        href = a["href"].strip()
        if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
            continue
        text = " ".join([a.get_text(" "), a.get("title") or ""])
        score = overlap_score(tokens, text)
        if score > best_score:
            best_score = score
            best_url = urljoin(base_url, href)
    return best_url


def _image_texts(img: Any) -> List[str]:
    texts = [img.get("title") or "", img.get("alt") or ""]
    src = img.get("src") or img.get("data-src") or ""
    if src:
        texts.extend(parse_qs(urlparse(src).query).get("title", []))
    return [t for t in texts if t.strip()]


def find_index_image(
    html: str,
    base_url: str,
    venue_tokens: Iterable[str],
    ignore: Set[str] = frozenset(),
) -> str:
    """
    First <img> whose title / alt / ?title= names the venue.

    Match by token containment either way: all venue tokens appear in the
    image text, or all of the image text's (non-generic) tokens appear in the
    venue name.
    """
    venue = set(venue_tokens)
    if not venue:
        return ""

    soup = BeautifulSoup(html or "", "html.parser")
    for img in soup.find_all("img"):
        src = (img.get("src") or img.get("data-src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        for text in _image_texts(img):
            toks = set(tokenize(text)) - ignore
            if toks and (venue <= toks or toks <= venue):
                return urljoin(base_url, src)
    return ""


# ---------------------------------------
# One-time index fetch
# ---------------------------------------

class DirectoryIndex:
    """
    The venue index page, fetched at most once per run.

    Concurrent callers wait on the same fetch. A failed fetch is remembered
    as an empty page so later events do not retry it.
    """

    def __init__(self, url: str, fetch: PageFetcher) -> None:
        self.url = url
        self._fetch = fetch
        self._lock = asyncio.Lock()
        self._loaded = False
        self._html = ""
        self._base_url = url
        self.fetch_count = 0

    @property
    def base_url(self) -> str:
        return self._base_url

    async def get(self) -> str:
        async with self._lock:
            if not self._loaded:
                self.fetch_count += 1
                self._loaded = True
                res = await self._fetch(self.url)
                if res is not None and res.ok:
                    self._html = res.text
                    self._base_url = res.url or self.url
                else:
                    logger.warning("[venue] index unavailable: %s", self.url)
        return self._html


# ---------------------------------------
# Adapter
# ---------------------------------------

class VenueDirectorySource(BaseImageSource):
    """
    Photos of Bordeaux municipal libraries from the library network's own site.

    Strategy:
    - only for venues whose normalized name contains the keyword
    - match the venue against the index page links, fetch that page, take its
      og:image / twitter:image
    - otherwise scan the index page's <img> tags for one named after the venue
    """

    name = "venue_directory"
    provider = "Bibliotheque Bordeaux"

    def __init__(self, ctx: SourceContext, index: Optional[DirectoryIndex] = None) -> None:
        super().__init__(ctx)
        self.index = index or DirectoryIndex(ctx.settings.venue_directory_url, self.fetch_page)

    @property
    def keyword(self) -> str:
        return normalize(self.ctx.settings.venue_keyword)

    def applies(self, event: EventRecord, query: SearchQuery) -> bool:
        return bool(self.keyword) and self.keyword in normalize(event.location_name)

    def generic_tokens(self, event: EventRecord) -> Set[str]:
        settings = self.ctx.settings
        words = " ".join([
            settings.venue_keyword,
            event.location_city or settings.default_city,
            settings.query_country,
        ])
        return set(tokenize(words)) | _STOPWORDS

    def venue_tokens(self, event: EventRecord) -> List[str]:
        generic = self.generic_tokens(event)
        return [t for t in dict.fromkeys(tokenize(event.location_name)) if t not in generic]

    async def _get(self, url: str) -> HttpResult:
        return await http_get_async(
            self.ctx.client,
            url,
            headers={"Accept": "text/html,application/xhtml+xml"},
            timeout_s=self.ctx.settings.venue_fetch_timeout_s,
        )

    async def fetch_page(self, url: str) -> Optional[HttpResult]:
        """Direct GET with a deadline; one retry through the proxy prefix if configured."""
        proxy = self.ctx.settings.venue_proxy_prefix
        try:
            res = await self._get(url)
            if res.ok:
                return res
            logger.info("[venue] HTTP %s for %s", res.status_code, url)
        except httpx.HTTPError as e:
            if not proxy:
                raise SourceUnavailable.from_error(self.name, e) from e
            logger.info("[venue] direct fetch failed (%s), retrying via proxy: %s", type(e).__name__, url)

        if not proxy:
            return None
        try:
            res = await self._get(proxy + url)
        except httpx.HTTPError as e:
            raise SourceUnavailable.from_error(self.name, e) from e
        # Keep the original url as the base for relative links.
        return HttpResult(url=url, status_code=res.status_code, text=res.text) if res.ok else None

    async def search(self, event: EventRecord, query: SearchQuery) -> List[Any]:
        tokens = self.venue_tokens(event)
        if not tokens:
            return []

        index_html = await self.index.get()
        if not index_html:
            return []

        page_url = find_venue_link(index_html, self.index.base_url, tokens)
        if page_url:
            try:
                page = await self.fetch_page(page_url)
            except SourceUnavailable as e:
                # fall through to the index images
                logger.info("[venue] page unavailable, trying index images: %s", e)
                page = None
            if page is not None:
                image = extract_preview_image(page.text, page.url or page_url)
                if image:
                    return [{"url": image, "page_url": page_url}]

        image = find_index_image(
            index_html, self.index.base_url, tokens, ignore=self.generic_tokens(event)
        )
        if image:
            return [{"url": image, "page_url": page_url or self.index.base_url}]
        return []

    def to_candidate(self, raw: Any) -> Candidate:
        return Candidate(
            url=raw["url"],
            provider=self.provider,
            page_url=raw.get("page_url") or "",
            credit=self.provider,
            source_url=self.ctx.settings.venue_directory_url,
        )
