from __future__ import annotations

from typing import Dict, Iterable, List, Type

from ..errors import ConfigurationError
from .base import BaseImageSource
from .adapters.commons import CommonsSource
from .adapters.openagenda import OpenAgendaSource
from .adapters.openverse import OpenverseSource
from .adapters.upstream import UpstreamFieldSource
from .adapters.venue_directory import VenueDirectorySource
from .types import SourceContext


ADAPTERS: Dict[str, Type[BaseImageSource]] = {
    "upstream": UpstreamFieldSource,
    "openagenda": OpenAgendaSource,
    "venue_directory": VenueDirectorySource,
    "openverse": OpenverseSource,
    "commons": CommonsSource,
}


def get_adapter(name: str, ctx: SourceContext) -> BaseImageSource:
    try:
        cls = ADAPTERS[name]
    except KeyError:
        known = ", ".join(ADAPTERS)
        raise ConfigurationError(f"Unknown image source {name!r} (known: {known})") from None
    return cls(ctx)


def build_chain(names: Iterable[str], ctx: SourceContext) -> List[BaseImageSource]:
    """Instantiate sources in priority order; duplicates are dropped."""
    return [get_adapter(n, ctx) for n in dict.fromkeys(names)]


def check_sources(names: Iterable[str]) -> None:
    """Raise ConfigurationError for any name with no adapter, before a run starts."""
    unknown = [n for n in names if n not in ADAPTERS]
    if unknown:
        known = ", ".join(ADAPTERS)
        raise ConfigurationError(f"Unknown image source(s) {', '.join(unknown)} (known: {known})")
