from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from .errors import ResolverError, TrackerError
from .models import HealthResult, TrackedEntry
from .page_fetch import PageFetcher
from .reporter import LoggingReporter, Reporter
from .tracker_config import (
    MIRROR_LEGACY_TOKEN,
    MIRROR_READ_INFIX,
    MIRROR_READ_PREFIX,
    MIRROR_READ_TOKEN,
    MIRROR_TOKEN,
    NOT_FOUND_MARKER,
)

logger = logging.getLogger(__name__)


def looks_like_not_found(text: str) -> bool:
    """True when the body is the host's own 404 page (served with any status)."""
    return NOT_FOUND_MARKER in (text or "")


def derive_alternate_url(current_url: str) -> Optional[str]:
    """Guess the mirror URL of a moved series page.

    ``manganato`` pages moved to ``readmanganato``: "read" goes in front of the
    first ``m`` of the URL. ``manganelo`` pages moved to ``manganato``.
    """
    url = current_url or ""
    if MIRROR_TOKEN in url and MIRROR_READ_TOKEN not in url:
        index = url.find("m")
        if index == 0:
            return MIRROR_READ_PREFIX + url
        return url[:index] + MIRROR_READ_INFIX + url[index:]
    if MIRROR_LEGACY_TOKEN in url:
        return url.replace(MIRROR_LEGACY_TOKEN, MIRROR_TOKEN)
    return None


@dataclass
class AlternateSuggestion:
    failed_url: str
    suggested_url: Optional[str]
    reachable: bool = False
    error: Optional[str] = None


class URLHealthChecker:
    def __init__(self, fetcher: PageFetcher, reporter: Optional[Reporter] = None) -> None:
        self.fetcher = fetcher
        self.reporter = reporter or LoggingReporter()

    async def is_unreachable(self, url: str) -> bool:
        if self.reporter.verbose:
            self.reporter.info(f"Beginning to fetch the contents of {url}")
        try:
            text = await self.fetcher.fetch(url)
        except TrackerError as exc:
            raise ResolverError.wrap(exc, url) from exc
        return looks_like_not_found(text)

    async def check(self, entry: TrackedEntry) -> HealthResult:
        try:
            unreachable = await self.is_unreachable(entry.url)
        except ResolverError as exc:
            logger.debug("health check failed for %s: %s", entry.url, exc.reason)
            return HealthResult(entry=entry, error=exc)
        return HealthResult(entry=entry, unreachable=unreachable)

    async def suggest(self, current_url: str) -> AlternateSuggestion:
        candidate = derive_alternate_url(current_url)
        if candidate is None:
            return AlternateSuggestion(failed_url=current_url, suggested_url=None)
        try:
            unreachable = await self.is_unreachable(candidate)
        except ResolverError as exc:
            if self.reporter.verbose:
                self.reporter.warn(f"An error occurred while searching the page! {exc.reason}")
            return AlternateSuggestion(current_url, candidate, reachable=False, error=exc.reason)
        if unreachable and self.reporter.verbose:
            self.reporter.info("The new URL doesn't point to a valid page.")
        return AlternateSuggestion(current_url, candidate, reachable=not unreachable)

    async def find_replacement_url(self, entry: TrackedEntry) -> Optional[str]:
        """Return a reachable mirror URL for ``entry`` or None."""
        suggestion = await self.suggest(entry.url)
        if suggestion.reachable:
            return suggestion.suggested_url
        return None


async def check_all(checker: URLHealthChecker, entries: Iterable[TrackedEntry]) -> List[HealthResult]:
    """Health-check every entry concurrently; results in completion order."""
    tasks = [asyncio.create_task(checker.check(entry)) for entry in entries]
    results: List[HealthResult] = []
    for future in asyncio.as_completed(tasks):
        results.append(await future)
    return results


__all__ = [
    "AlternateSuggestion",
    "URLHealthChecker",
    "check_all",
    "derive_alternate_url",
    "looks_like_not_found",
]
