"""Error taxonomy for chapter resolution and the record store."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional


class ErrorKind(str, Enum):
    NETWORK = "network"
    TITLE_CONTAINER_MISSING = "title_container_missing"
    TITLE_UNPARSEABLE = "title_unparseable"
    CHAPTER_LIST_ABSENT = "chapter_list_absent"
    CHAPTER_LIST_EMPTY = "chapter_list_empty"
    CHAPTER_LINK_UNREACHABLE = "chapter_link_unreachable"
    STORE_FORMAT = "store_format"


EXTRACTION_KINDS = frozenset(
    {
        ErrorKind.TITLE_CONTAINER_MISSING,
        ErrorKind.TITLE_UNPARSEABLE,
        ErrorKind.CHAPTER_LIST_ABSENT,
        ErrorKind.CHAPTER_LIST_EMPTY,
        ErrorKind.CHAPTER_LINK_UNREACHABLE,
    }
)


class TrackerError(Exception):
    """Base class for every error raised by manga-updater."""

    kind: ErrorKind

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class NetworkError(TrackerError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(ErrorKind.NETWORK, f"request to {url} failed: {reason}")
        self.url = url
        self.reason = reason


def _extraction_message(kind: ErrorKind, url: str) -> str:
    if kind is ErrorKind.TITLE_CONTAINER_MISSING:
        return f"The title container is missing for URL {url}."
    if kind is ErrorKind.TITLE_UNPARSEABLE:
        return f"The title of the manga at URL {url} cannot be parsed."
    if kind is ErrorKind.CHAPTER_LIST_ABSENT:
        return "The chapter list is absent."
    if kind is ErrorKind.CHAPTER_LIST_EMPTY:
        return "The chapter list is empty."
    return "The chapter link is unreachable."


class ExtractionError(TrackerError):
    def __init__(self, kind: ErrorKind, url: str) -> None:
        if kind not in EXTRACTION_KINDS:
            raise ValueError(f"{kind!r} is not an extraction error kind")
        super().__init__(kind, _extraction_message(kind, url))
        self.url = url


class StoreFormatError(TrackerError):
    """The store does not follow the ``URL,Last chapter,Title`` layout."""

    def __init__(self, path: Path, reason: str, line: Optional[int] = None) -> None:
        where = f"{path}:{line}" if line is not None else str(path)
        super().__init__(ErrorKind.STORE_FORMAT, f"{where}: {reason}")
        self.path = path
        self.reason = reason
        self.line = line


class ResolverError(TrackerError):
    """Unified failure of a resolve: callers branch on ``kind`` only."""

    def __init__(self, kind: ErrorKind, url: str, stage: str, reason: str) -> None:
        super().__init__(kind, reason)
        self.url = url
        self.stage = stage
        self.reason = reason

    @classmethod
    def wrap(cls, exc: TrackerError, url: str) -> "ResolverError":
        if isinstance(exc, ResolverError):
            return exc
        stage = "fetch" if exc.kind is ErrorKind.NETWORK else "extract"
        return cls(exc.kind, url, stage, exc.message)

    def __str__(self) -> str:
        return f"An error occurred while scraping {self.url}: {self.reason}"


__all__ = [
    "ErrorKind",
    "EXTRACTION_KINDS",
    "TrackerError",
    "NetworkError",
    "ExtractionError",
    "StoreFormatError",
    "ResolverError",
]
