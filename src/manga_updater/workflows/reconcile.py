"""Merge policies between the persisted record set and fresh observations.

All functions are pure: they never mutate their inputs and return a new list.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Union

from .models import BatchReport, TrackedEntry


def apply_chapter_updates(
    original: Sequence[TrackedEntry],
    updates: Iterable[TrackedEntry],
) -> List[TrackedEntry]:
    """Refresh chapter number and title of known URLs; never insert."""
    by_url: Dict[str, TrackedEntry] = {}
    for update in updates:
        by_url[update.url] = update
    merged: List[TrackedEntry] = []
    for entry in original:
        update = by_url.get(entry.url)
        if update is None:
            merged.append(entry)
        else:
            merged.append(entry.with_chapter(update.last_chapter, update.title))
    return merged


def merge_new_entries(
    imported: Iterable[TrackedEntry],
    current: Sequence[TrackedEntry],
) -> List[TrackedEntry]:
    """Keep ``current`` as-is and append imported entries with unseen URLs."""
    known_urls = {entry.url for entry in current}
    merged = list(current)
    for entry in imported:
        if entry.url not in known_urls:
            merged.append(entry)
    return merged


def reset_entry_chapter_at_position(
    entries: Sequence[TrackedEntry],
    position: int,
) -> List[TrackedEntry]:
    """Step the entry at 0-based ``position`` back one chapter."""
    reset = list(entries)
    if 0 <= position < len(reset):
        target = reset[position]
        reset[position] = target.with_chapter(target.last_chapter - 1.0)
    return reset


def updates_from_batch(report: BatchReport) -> List[TrackedEntry]:
    updates: List[TrackedEntry] = []
    for item in report.successes:
        chapter = item.chapter
        if chapter is None:
            continue
        updates.append(TrackedEntry(item.entry.url, chapter.chapter_number, chapter.series_title))
    return updates


def _as_position(target: Union[str, int]) -> Optional[int]:
    if isinstance(target, int):
        return target
    try:
        return int(str(target).strip())
    except ValueError:
        return None


def find_entry(entries: Sequence[TrackedEntry], target: Union[str, int]) -> Optional[TrackedEntry]:
    """Look an entry up by 1-based position or by exact URL."""
    position = _as_position(target)
    if position is not None:
        if 1 <= position <= len(entries):
            return entries[position - 1]
        return None
    for entry in entries:
        if entry.url == target:
            return entry
    return None


def remove_entry(entries: Sequence[TrackedEntry], target: Union[str, int]) -> List[TrackedEntry]:
    """Drop an entry by 1-based position or by URL.

    Raises IndexError for a position outside the list. Removing an unknown URL
    returns the entries unchanged.
    """
    position = _as_position(target)
    if position is not None:
        if not 1 <= position <= len(entries):
            raise IndexError(f"line {position} is out of bounds (1..{len(entries)})")
        return [entry for idx, entry in enumerate(entries) if idx != position - 1]
    return [entry for entry in entries if entry.url != target]


__all__ = [
    "apply_chapter_updates",
    "merge_new_entries",
    "reset_entry_chapter_at_position",
    "updates_from_batch",
    "find_entry",
    "remove_entry",
]
