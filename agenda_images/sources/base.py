from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

from ..models import Candidate, EventRecord, SearchQuery
from .types import SourceContext


class BaseImageSource(ABC):
    """
    One external image provider in the selection chain.

    Subclasses implement search() and to_candidate(); ranking and the
    acceptance check are shared through pick().
    """

    name: str = ""
    provider: str = ""
    # Search-based sources must also pass the minimum-width check.
    checks_min_width: bool = False

    def __init__(self, ctx: SourceContext) -> None:
        self.ctx = ctx

    def applies(self, event: EventRecord, query: SearchQuery) -> bool:
        """Cheap pre-check; False skips the source without any I/O."""
        return True

    @abstractmethod
    async def search(self, event: EventRecord, query: SearchQuery) -> List[Any]:
        """Return raw provider results (may be empty)."""

    def score(self, tokens: Sequence[str], raw: Any) -> float:
        return 0

    @abstractmethod
    def to_candidate(self, raw: Any) -> Candidate:
        """Map one raw result to a Candidate."""

    def accepts(self, candidate: Candidate) -> bool:
        if not candidate.url:
            return False
        if self.checks_min_width and candidate.width is not None:
            return candidate.width >= self.ctx.settings.min_width
        return True

    async def pick(self, event: EventRecord, query: SearchQuery) -> Optional[Candidate]:
        results = await self.search(event, query)
        if not results:
            return None

        # max() keeps the first of equal scores, i.e. the provider's own ranking.
        best_score, best = max(
            ((self.score(query.tokens, r), r) for r in results),
            key=lambda pair: pair[0],
        )
        candidate = self.to_candidate(best).model_copy(update={"score": best_score})
        return candidate if self.accepts(candidate) else None
