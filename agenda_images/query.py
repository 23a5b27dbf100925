from __future__ import annotations

from .models import EventRecord, SearchQuery
from .text import tokenize


def build_query(
    event: EventRecord,
    *,
    country: str = "France",
    default_city: str = "Bordeaux",
) -> SearchQuery:
    """
    Search text + scoring tokens for one event.

    Venue identity first: recurring events at the same place then share a
    query (and usually a picture). The event title is only used when the
    record has no venue.
    """
    city = event.location_city or default_city

    if event.location_name:
        parts = [
            event.location_name,
            event.location_address,
            event.location_district,
            city,
            country,
        ]
    else:
        parts = [event.title, city, country]

    text = " ".join(p.strip() for p in parts if p and p.strip())
    tokens = tuple(dict.fromkeys(tokenize(text)))
    return SearchQuery(text=text, tokens=tokens)
