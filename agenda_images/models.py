from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


# ============================================================
# Image field (unstable upstream shape)
# ============================================================

def image_url_from_field(value: Any) -> str:
    """
    Resolve an upstream image field to a url string ("" when there is none).

    Opendatasoft and OpenAgenda return this field as any of:
      - None / ""            -> no image
      - "https://..."        -> the url
      - [{"url": ...}, ...]  -> first element (object or plain string)
      - {"url": ...} / {"href": ...}
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (list, tuple)):
        return image_url_from_field(value[0]) if value else ""
    if isinstance(value, Mapping):
        for key in ("url", "href"):
            v = value.get(key)
            if isinstance(v, str) and v.strip():
                return v.strip()
        return ""
    return ""


def is_missing_image(value: Any) -> bool:
    return not image_url_from_field(value)


def _first_text(row: Mapping[str, Any], *keys: str) -> str:
    for k in keys:
        v = row.get(k)
        if v is None:
            continue
        s = str(v).strip()
        if s:
            return s
    return ""


# ============================================================
# Records
# ============================================================

class EventRecord(BaseModel):
    """
    One met_agenda row, reduced to the fields image selection reads.

    The untouched row is kept in `raw` for adapters needing other fields.
    """
    model_config = ConfigDict(frozen=True)

    uid: str = ""
    slug: str = ""
    title: str = ""
    location_name: str = ""
    location_address: str = ""
    location_district: str = ""
    location_city: str = ""
    location_image: Any = None
    originagenda_uid: str = ""
    raw: Dict[str, Any] = Field(default_factory=dict, repr=False)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "EventRecord":
        return cls(
            uid=_first_text(row, "uid"),
            slug=_first_text(row, "slug"),
            title=_first_text(row, "title_fr", "title", "title_en"),
            location_name=_first_text(row, "location_name", "location", "location_title"),
            location_address=_first_text(row, "location_address", "address"),
            location_district=_first_text(row, "location_district", "district"),
            location_city=_first_text(row, "location_city", "city"),
            location_image=row.get("location_image"),
            originagenda_uid=_first_text(row, "originagenda_uid"),
            raw=dict(row),
        )

    @property
    def key(self) -> str:
        """Identifier used in log lines."""
        return self.uid or self.slug

    @property
    def image_url(self) -> str:
        return image_url_from_field(self.location_image)

    @property
    def has_image(self) -> bool:
        return bool(self.image_url)


class SearchQuery(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    tokens: Tuple[str, ...] = ()


class Candidate(BaseModel):
    url: str = ""
    provider: str = ""
    page_url: str = ""
    author: str = ""
    license: str = ""
    credit: str = ""
    source_url: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    score: float = 0.0

    def to_entry(self, query: SearchQuery, now: Optional[datetime] = None) -> "CacheEntry":
        now = now or datetime.now(timezone.utc)
        return CacheEntry(
            **self.model_dump(exclude={"score"}),
            q=query.text,
            updated_at=now.replace(microsecond=0).isoformat(),
        )


class CacheEntry(BaseModel):
    url: str
    provider: str = ""
    page_url: str = ""
    author: str = ""
    license: str = ""
    credit: str = ""
    source_url: str = ""
    width: Optional[int] = None
    height: Optional[int] = None
    q: str = ""
    updated_at: str = ""
