from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

from ..core.keys import (
    K_CHAPTER_TITLE,
    K_CHAPTER_URL,
    K_ERROR,
    K_ERROR_KIND,
    K_HAS_UPDATE,
    K_LAST_CHAPTER,
    K_LATEST_CHAPTER,
    K_STAGE,
    K_TITLE,
    K_URL,
)
from .errors import ResolverError


@dataclass(frozen=True)
class TrackedEntry:
    """One line of the store: a followed series and the last chapter read."""

    url: str
    last_chapter: float
    title: str = ""

    def with_chapter(self, number: float, title: Optional[str] = None) -> "TrackedEntry":
        return replace(self, last_chapter=number, title=self.title if title is None else title)

    def with_url(self, url: str) -> "TrackedEntry":
        return replace(self, url=url)


@dataclass(frozen=True)
class ResolvedChapter:
    """Latest chapter observed on a series page."""

    series_title: str
    chapter_url: str
    chapter_title: str
    chapter_number: float


@dataclass(frozen=True)
class EntryWithChapter:
    entry: TrackedEntry
    chapter: ResolvedChapter

    @property
    def has_update(self) -> bool:
        return self.chapter.chapter_number > self.entry.last_chapter


@dataclass
class BatchItem:
    """Outcome of one scheduled resolve; carries its entry so order does not matter."""

    entry: TrackedEntry
    chapter: Optional[ResolvedChapter] = None
    error: Optional[ResolverError] = None

    @property
    def ok(self) -> bool:
        return self.chapter is not None and self.error is None

    @property
    def paired(self) -> Optional[EntryWithChapter]:
        if self.chapter is None:
            return None
        return EntryWithChapter(self.entry, self.chapter)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            K_URL: self.entry.url,
            K_TITLE: self.entry.title,
            K_LAST_CHAPTER: self.entry.last_chapter,
        }
        if self.chapter is not None:
            payload[K_LATEST_CHAPTER] = self.chapter.chapter_number
            payload[K_CHAPTER_TITLE] = self.chapter.chapter_title
            payload[K_CHAPTER_URL] = self.chapter.chapter_url
            payload[K_HAS_UPDATE] = self.chapter.chapter_number > self.entry.last_chapter
        if self.error is not None:
            payload[K_ERROR] = self.error.reason
            payload[K_ERROR_KIND] = self.error.kind.value
            payload[K_STAGE] = self.error.stage
        return payload


@dataclass
class BatchReport:
    items: List[BatchItem] = field(default_factory=list)

    @property
    def successes(self) -> List[BatchItem]:
        return [item for item in self.items if item.ok]

    @property
    def failures(self) -> List[BatchItem]:
        return [item for item in self.items if not item.ok]

    @property
    def updated(self) -> List[EntryWithChapter]:
        pairs = [item.paired for item in self.successes]
        return [pair for pair in pairs if pair is not None and pair.has_update]

    def counts(self) -> Dict[str, int]:
        return {
            "total": len(self.items),
            "ok": len(self.successes),
            "failed": len(self.failures),
            "updated": len(self.updated),
        }


@dataclass
class HealthResult:
    entry: TrackedEntry
    unreachable: Optional[bool] = None
    error: Optional[ResolverError] = None


__all__ = [
    "TrackedEntry",
    "ResolvedChapter",
    "EntryWithChapter",
    "BatchItem",
    "BatchReport",
    "HealthResult",
]
