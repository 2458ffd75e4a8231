"""Resolve the latest chapter of one series, or of many concurrently."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, List, Optional, Sequence

from .chapter_extract import extract_last_chapter
from .errors import ResolverError, TrackerError
from .models import BatchItem, BatchReport, ResolvedChapter, TrackedEntry
from .page_fetch import FetchConfig, PageFetcher, open_session
from .reporter import LoggingReporter, Reporter

logger = logging.getLogger(__name__)


class ChapterResolver:
    """Fetch + extract, with every failure surfaced as a ResolverError."""

    def __init__(self, fetcher: PageFetcher, reporter: Optional[Reporter] = None) -> None:
        self.fetcher = fetcher
        self.reporter = reporter or LoggingReporter()

    async def resolve_latest(self, url: str) -> ResolvedChapter:
        try:
            html = await self.fetcher.fetch(url)
            return extract_last_chapter(html, url)
        except TrackerError as exc:
            error = ResolverError.wrap(exc, url)
            if self.reporter.verbose:
                self.reporter.warn(f"Error processing url {url}: {error.reason}")
            else:
                logger.debug("resolve failed for %s (%s): %s", url, error.stage, error.reason)
            raise error from exc

    async def resolve_item(self, entry: TrackedEntry) -> BatchItem:
        try:
            chapter = await self.resolve_latest(entry.url)
        except ResolverError as exc:
            return BatchItem(entry=entry, error=exc)
        return BatchItem(entry=entry, chapter=chapter)


async def resolve_all(
    resolver: ChapterResolver,
    entries: Iterable[TrackedEntry],
    *,
    concurrency: int = 0,
) -> BatchReport:
    """Resolve every entry at once and collect one BatchItem per entry.

    Items come back in completion order. A failing entry is recorded on its
    item and never stops the others.
    """
    semaphore = asyncio.Semaphore(concurrency) if concurrency > 0 else None

    async def _run(entry: TrackedEntry) -> BatchItem:
        if semaphore is None:
            return await resolver.resolve_item(entry)
        async with semaphore:
            return await resolver.resolve_item(entry)

    tasks = [asyncio.create_task(_run(entry)) for entry in entries]
    report = BatchReport()
    for future in asyncio.as_completed(tasks):
        report.items.append(await future)

    failures = report.failures
    if failures:
        resolver.reporter.warn(f"{len(failures)} of {len(report.items)} mangas could not be checked.")
        if resolver.reporter.verbose:
            for item in failures:
                resolver.reporter.warn(f"  skipped {item.entry.url}: {item.error.reason if item.error else 'unknown'}")
    elif resolver.reporter.verbose:
        resolver.reporter.info(f"{len(report.items)} chapters retrieved.")
    return report


def select_positions(entries: Sequence[TrackedEntry], positions: Iterable[object]) -> List[TrackedEntry]:
    """Pick entries by 1-based position; unusable positions are dropped."""
    selected: List[TrackedEntry] = []
    for raw in positions:
        try:
            position = int(str(raw).strip())
        except ValueError:
            continue
        if 1 <= position <= len(entries):
            selected.append(entries[position - 1])
    return selected


async def resolve_batch(
    entries: Sequence[TrackedEntry],
    *,
    config: Optional[FetchConfig] = None,
    reporter: Optional[Reporter] = None,
) -> BatchReport:
    """Open one pooled session and resolve ``entries`` through it."""
    cfg = config or FetchConfig()
    async with open_session(cfg) as session:
        resolver = ChapterResolver(PageFetcher(session, cfg), reporter)
        if resolver.reporter.verbose:
            resolver.reporter.info("Client created, fetching the chapters asynchronously...")
        return await resolve_all(resolver, entries, concurrency=cfg.concurrency)


async def resolve_one(
    url: str,
    *,
    config: Optional[FetchConfig] = None,
    reporter: Optional[Reporter] = None,
) -> ResolvedChapter:
    """Resolve a single URL with a one-off request."""
    resolver = ChapterResolver(PageFetcher(None, config), reporter)
    return await resolver.resolve_latest(url)


__all__ = [
    "ChapterResolver",
    "resolve_all",
    "resolve_batch",
    "resolve_one",
    "select_positions",
]
