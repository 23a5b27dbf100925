# agenda_images/text.py
"""
Text folding shared by every scorer.

"Bibliothèque Mériadeck" and "BIBLIOTHEQUE meriadeck" must compare equal, so
all matching goes through normalize() -> tokenize() -> overlap_score().
"""
from __future__ import annotations

import re
import unicodedata
from typing import Iterable, List, Optional

from bs4 import BeautifulSoup

MIN_TOKEN_LEN = 3

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]+")
_MULTI_SPACE_RE = re.compile(r"\s+")


def normalize(text: Optional[str]) -> str:
    """Lowercase, strip diacritics, collapse everything outside [a-z0-9] to single spaces."""
    s = unicodedata.normalize("NFD", str(text or "").lower())
    s = "".join(ch for ch in s if not unicodedata.combining(ch))
    return _NON_ALNUM_RE.sub(" ", s).strip()


def tokenize(text: Optional[str]) -> List[str]:
    return [t for t in normalize(text).split(" ") if len(t) >= MIN_TOKEN_LEN]


def overlap_score(query_tokens: Iterable[str], candidate_text: Optional[str]) -> int:
    """Count query tokens found in the token set of candidate_text (membership, not frequency)."""
    candidate = set(tokenize(candidate_text))
    return sum(1 for t in query_tokens if t in candidate)


def strip_html(text: Optional[str]) -> str:
    if not text:
        return ""
    plain = BeautifulSoup(str(text), "html.parser").get_text(" ")
    return _MULTI_SPACE_RE.sub(" ", plain).strip()
