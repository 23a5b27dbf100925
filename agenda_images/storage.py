from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, MutableMapping, Union

from .models import CacheEntry

logger = logging.getLogger(__name__)

Store = MutableMapping[str, Dict[str, Any]]


# -----------------------------------------------------------------------------
# Cache merge
# -----------------------------------------------------------------------------

def has_verified_entry(store: Mapping[str, Any], key: str) -> bool:
    """True if `key` already maps to an entry with a non-empty url."""
    if not key:
        return False
    entry = store.get(key)
    return isinstance(entry, Mapping) and bool(str(entry.get("url") or "").strip())


def merge_entry(
    store: Store,
    uid: str,
    slug: str,
    entry: Union[CacheEntry, Mapping[str, Any]],
) -> bool:
    """
    Write `entry` under uid (and slug as an alias) without clobbering anything verified.

    Invariants:
    - store[uid] holding a url is never replaced (the whole merge is skipped)
    - an existing slug key is never replaced
    - merging the same entry twice leaves the store as after the first merge

    Returns True if at least one key was written.
    """
    uid = (uid or "").strip()
    slug = (slug or "").strip()
    if not uid and not slug:
        return False

    if has_verified_entry(store, uid):
        return False

    row = entry.model_dump() if isinstance(entry, CacheEntry) else dict(entry)
    wrote = False

    if uid:
        store[uid] = row
        wrote = True

    if slug and slug not in store:
        store[slug] = row
        wrote = True

    return wrote


# -----------------------------------------------------------------------------
# JSON file persistence (whole document)
# -----------------------------------------------------------------------------

class JsonFileStore:
    """Load/save the uid -> entry mapping as one JSON document."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        """Existing mapping, or {} when the file is missing or unreadable."""
        try:
            txt = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning("[store] cannot read %s: %s", self.path, e)
            return {}

        try:
            data = json.loads(txt)
        except ValueError as e:
            logger.warning("[store] %s is not valid JSON, starting empty: %s", self.path, e)
            return {}

        return data if isinstance(data, dict) else {}

    def save(self, mapping: Mapping[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(mapping, indent=2, ensure_ascii=False) + "\n",
            encoding="utf-8",
        )
        logger.info("[store] wrote %s (%d keys)", self.path, len(mapping))
