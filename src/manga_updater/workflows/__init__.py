"""High-level exports for the manga_updater workflows."""

from .chapter_resolver import ChapterResolver, resolve_all, resolve_batch, resolve_one
from .errors import ErrorKind, ExtractionError, NetworkError, ResolverError, StoreFormatError, TrackerError
from .models import BatchItem, BatchReport, ResolvedChapter, TrackedEntry
from .page_fetch import FetchConfig, PageFetcher
from .reconcile import apply_chapter_updates, merge_new_entries, reset_entry_chapter_at_position
from .reporter import LoggingReporter, RecordingReporter, Reporter

__all__ = [
    "BatchItem",
    "BatchReport",
    "ChapterResolver",
    "ErrorKind",
    "ExtractionError",
    "FetchConfig",
    "LoggingReporter",
    "NetworkError",
    "PageFetcher",
    "RecordingReporter",
    "Reporter",
    "ResolvedChapter",
    "ResolverError",
    "StoreFormatError",
    "TrackedEntry",
    "TrackerError",
    "apply_chapter_updates",
    "merge_new_entries",
    "reset_entry_chapter_at_position",
    "resolve_all",
    "resolve_batch",
    "resolve_one",
]
