from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()

BORDEAUX_API_BASE = (
    "https://datahub.bordeaux-metropole.fr/api/explore/v2.1/catalog/datasets/met_agenda/records"
)
DEFAULT_OUT_PATH = Path("assets") / "event-images.json"
DEFAULT_VENUE_DIRECTORY_URL = "https://bibliotheque.bordeaux.fr/les-bibliotheques"
USER_AGENT = "agenda-bdx-image-enricher/1.0 (GitHub Actions)"

# Chain used when dedicated venue search is on (current generation).
DEFAULT_SOURCES: Tuple[str, ...] = ("upstream", "openagenda", "venue_directory", "openverse")
# First generation: no venue scraper, Commons as the last fallback.
LEGACY_SOURCES: Tuple[str, ...] = ("upstream", "openagenda", "openverse", "commons")

DEFAULT_PREFERRED_PROVIDERS: Tuple[str, ...] = (
    "wikimedia",
    "commons.wikimedia.org",
    "unsplash",
    "pexels",
)

DEFAULT_LICENSES: Tuple[str, ...] = ("cc0", "pdm", "by", "by-sa")

# Openverse rejects larger pages for anonymous clients.
OPENVERSE_MAX_PAGE_SIZE = 20


def _csv(value: str) -> Tuple[str, ...]:
    return tuple(s.strip().lower() for s in value.split(",") if s.strip())


def _int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}", original_error=e) from e
    if value < minimum:
        raise ConfigurationError(f"{name} must be >= {minimum}, got {value}")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}", original_error=e) from e


@dataclass(frozen=True)
class Settings:
    target_uid: str = ""
    max_events: int = 5000
    concurrency: int = 1
    min_width: int = 1200
    openverse_page_size: int = 20
    allowed_licenses: Tuple[str, ...] = DEFAULT_LICENSES
    preferred_providers: Tuple[str, ...] = DEFAULT_PREFERRED_PROVIDERS
    sources: Tuple[str, ...] = DEFAULT_SOURCES

    official_images: bool = False
    openagenda_key: str = ""
    openagenda_ext_key: str = ""

    out_path: Path = field(default_factory=lambda: DEFAULT_OUT_PATH)
    request_delay_s: float = 0.25

    venue_directory_url: str = DEFAULT_VENUE_DIRECTORY_URL
    venue_keyword: str = "bibliotheque"
    venue_proxy_prefix: str = ""
    venue_fetch_timeout_s: float = 15.0

    query_country: str = "France"
    default_city: str = "Bordeaux"
    log_level: str = "INFO"

    @property
    def openverse_effective_page_size(self) -> int:
        return min(self.openverse_page_size, OPENVERSE_MAX_PAGE_SIZE)

    @property
    def openagenda_enabled(self) -> bool:
        return self.official_images and bool(self.openagenda_key)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables (a .env file is loaded at import).

        Raises ConfigurationError for malformed numbers; unknown source names are
        rejected later by the registry.
        """
        env = os.environ if environ is None else environ

        sources = _csv(env.get("IMAGE_SOURCES") or "") or DEFAULT_SOURCES
        licenses = _csv(env.get("ALLOWED_LICENSES") or "") or DEFAULT_LICENSES
        preferred = _csv(env.get("PREFERRED_PROVIDERS") or "") or DEFAULT_PREFERRED_PROVIDERS

        return cls(
            target_uid=(env.get("TARGET_UID") or "").strip(),
            max_events=_int(env, "MAX_EVENTS", 5000),
            concurrency=_int(env, "CONCURRENCY", 1, minimum=1),
            min_width=_int(env, "MIN_WIDTH", 1200),
            openverse_page_size=_int(env, "OPENVERSE_PAGE_SIZE", 20, minimum=1),
            allowed_licenses=licenses,
            preferred_providers=preferred,
            sources=sources,
            official_images=(env.get("OFFICIAL_IMAGES") or "").strip() == "1",
            openagenda_key=(env.get("OPENAGENDA_KEY") or "").strip(),
            openagenda_ext_key=(env.get("OPENAGENDA_EXT_KEY") or "").strip(),
            out_path=Path((env.get("OUT_PATH") or "").strip() or DEFAULT_OUT_PATH),
            request_delay_s=_int(env, "REQUEST_DELAY_MS", 250) / 1000.0,
            venue_directory_url=(env.get("VENUE_DIRECTORY_URL") or "").strip()
            or DEFAULT_VENUE_DIRECTORY_URL,
            venue_keyword=(env.get("VENUE_KEYWORD") or "").strip() or "bibliotheque",
            venue_proxy_prefix=(env.get("VENUE_PROXY_PREFIX") or "").strip(),
            venue_fetch_timeout_s=_float(env, "VENUE_FETCH_TIMEOUT", 15.0),
            query_country=(env.get("QUERY_COUNTRY") or "").strip() or "France",
            default_city=(env.get("DEFAULT_CITY") or "").strip() or "Bordeaux",
            log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
        )
