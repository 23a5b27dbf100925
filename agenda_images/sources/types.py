from __future__ import annotations

from dataclasses import dataclass, field

import httpx

from ..config import Settings


@dataclass(frozen=True)
class ScoreWeights:
    """
    Additive ranking weights. The ratios between them are what matters;
    absolute values can be retuned as long as the ordering is kept.
    """
    title: int = 3
    creator: int = 1
    tags: int = 1
    large_bonus: int = 4
    adequate_bonus: int = 2
    preferred_provider: int = 4
    attribution: int = 1
    large_px: int = 2000

    # Commons fallback
    commons_title: int = 3
    commons_artist: int = 1
    commons_license: int = 2
    commons_large_bonus: int = 3
    commons_adequate_bonus: int = 2


@dataclass
class SourceContext:
    """Everything an adapter needs from the run: settings, HTTP client, weights."""
    settings: Settings
    client: httpx.AsyncClient
    weights: ScoreWeights = field(default_factory=ScoreWeights)
