from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .config import USER_AGENT, Settings
from .errors import ConfigurationError, FatalIngestionError
from .feed import AgendaFeed
from .limiter import ConcurrencyLimiter
from .models import EventRecord
from .selection import ImageSelector
from .sources.registry import build_chain, check_sources
from .sources.types import SourceContext
from .storage import JsonFileStore, Store, has_verified_entry, merge_entry

logger = logging.getLogger(__name__)

PROGRESS_EVERY = 25
HTTP_TIMEOUT_S = 30.0


@dataclass
class RunStats:
    events: int = 0
    matched: int = 0
    unmatched: int = 0
    skipped_existing: int = 0
    skipped_no_key: int = 0
    added: int = 0
    done: int = 0

    def summary_line(self) -> str:
        return (
            f"[enrich][summary]"
            f" events={self.events}"
            f" matched={self.matched}"
            f" unmatched={self.unmatched}"
            f" skipped_existing={self.skipped_existing}"
            f" skipped_no_key={self.skipped_no_key}"
            f" added={self.added}"
        )


# ============================================================
# Async batch
# ============================================================

async def enrich_events(
    events: Sequence[EventRecord],
    selector: ImageSelector,
    store: Store,
    *,
    concurrency: int = 1,
    delay_s: float = 0.25,
) -> RunStats:
    """
    Select an image for every event and merge matches into `store`.

    Tasks complete in any order; merge_entry's skip-if-present rule makes
    the resulting store independent of that order.
    """
    stats = RunStats(events=len(events))
    limiter = ConcurrencyLimiter(concurrency)

    async def process(event: EventRecord) -> None:
        uid, slug = event.uid, event.slug
        if not uid and not slug:
            stats.skipped_no_key += 1
            stats.done += 1
            return

        if has_verified_entry(store, uid):
            stats.skipped_existing += 1
            stats.done += 1
            return

        picked = await selector.select_image(event)
        # be gentle on the APIs
        await asyncio.sleep(delay_s)

        if picked is not None and picked.url:
            entry = picked.to_entry(selector.build_query(event))
            if merge_entry(store, uid, slug, entry):
                stats.added += 1
            stats.matched += 1
            logger.info("[enrich] + %s -> %s", event.key, picked.provider)
        else:
            stats.unmatched += 1
            logger.info("[enrich] - %s (no match)", event.key)

        stats.done += 1
        if stats.done % PROGRESS_EVERY == 0:
            logger.info("[enrich] Progress %d/%d", stats.done, len(events))

    await asyncio.gather(*(limiter.submit(process, ev) for ev in events))
    return stats


async def enrich_with_sources(
    events: Sequence[EventRecord],
    store: Store,
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> RunStats:
    """Build the configured source chain around one shared AsyncClient and run the batch."""
    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(timeout=HTTP_TIMEOUT_S, headers={"User-Agent": USER_AGENT})
    try:
        ctx = SourceContext(settings=settings, client=client)
        selector = ImageSelector(build_chain(settings.sources, ctx), settings)
        logger.info("[enrich] sources: %s", ", ".join(s.name for s in selector.sources))
        return await enrich_events(
            events,
            selector,
            store,
            concurrency=settings.concurrency,
            delay_s=settings.request_delay_s,
        )
    finally:
        if owns_client:
            await client.aclose()


# ============================================================
# Run
# ============================================================

def load_events(settings: Settings, feed: AgendaFeed) -> List[EventRecord]:
    if settings.target_uid:
        # single-event mode keeps events that already carry an image
        one = feed.fetch_one(settings.target_uid)
        events = [one] if one is not None else []
        logger.info("[enrich] TARGET_UID=%s; rows=%d", settings.target_uid, len(events))
        return events

    logger.info("[enrich] Fetching up to %d events missing images...", settings.max_events)
    events = feed.events_missing_images(settings.max_events)
    logger.info("[enrich] Found %d events without images", len(events))
    return events


def run(
    settings: Settings,
    *,
    feed: Optional[AgendaFeed] = None,
    store: Optional[JsonFileStore] = None,
    client: Optional[httpx.AsyncClient] = None,
    dry_run: bool = False,
) -> RunStats:
    """
    One enrichment run: read feed, select images, save the store once.

    FatalIngestionError from the feed propagates; nothing is written then.
    """
    feed = feed or AgendaFeed()
    store = store or JsonFileStore(settings.out_path)

    events = load_events(settings, feed)
    mapping: Dict[str, Any] = store.load()

    stats = asyncio.run(enrich_with_sources(events, mapping, settings, client=client))

    if dry_run:
        logger.info("[enrich] dry run, not writing %s", store.path)
    else:
        store.save(mapping)
        logger.info("[enrich] Wrote %s (added %d entries)", store.path, stats.added)

    # grep '[enrich][summary]' run.log
    print(stats.summary_line())
    return stats


# ============================================================
# CLI
# ============================================================

def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="Find openly licensed images for Bordeaux agenda events missing one.",
    )
    p.add_argument("--target-uid", help="Process a single event uid (overrides TARGET_UID)")
    p.add_argument("--max-events", type=int, help="Max events per run (overrides MAX_EVENTS)")
    p.add_argument("--concurrency", type=int, help="Parallel selections (overrides CONCURRENCY)")
    p.add_argument("--out", type=Path, help="Output JSON path (overrides OUT_PATH)")
    p.add_argument("--dry-run", action="store_true", help="Do not write the output file")
    return p.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        settings = Settings.from_env()
        overrides: Dict[str, Any] = {}
        if args.target_uid is not None:
            overrides["target_uid"] = args.target_uid.strip()
        if args.max_events is not None:
            overrides["max_events"] = args.max_events
        if args.concurrency is not None:
            if args.concurrency < 1:
                raise ConfigurationError("--concurrency must be >= 1")
            overrides["concurrency"] = args.concurrency
        if args.out is not None:
            overrides["out_path"] = args.out
        settings = dataclasses.replace(settings, **overrides)
        check_sources(settings.sources)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
        logger.error("[enrich] configuration error: %s", e)
        return 2

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)-8s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    try:
        run(settings, dry_run=args.dry_run)
    except FatalIngestionError as e:
        logger.error("[enrich] fatal: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
