"""Reporter capability handed to the resolution core instead of printing."""

from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Tuple


class Reporter(Protocol):
    verbose: bool

    def info(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...

    def success(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LoggingReporter:
    """Default reporter: forwards to a stdlib logger."""

    def __init__(self, logger: Optional[logging.Logger] = None, verbose: bool = False) -> None:
        self.logger = logger or logging.getLogger("manga_updater")
        self.verbose = verbose

    def info(self, message: str) -> None:
        self.logger.info(message)

    def warn(self, message: str) -> None:
        self.logger.warning(message)

    def success(self, message: str) -> None:
        self.logger.info(message)

    def error(self, message: str) -> None:
        self.logger.error(message)


class RecordingReporter:
    """Keeps every message in memory; used by tests."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose
        self.messages: List[Tuple[str, str]] = []

    def _record(self, level: str, message: str) -> None:
        self.messages.append((level, message))

    def info(self, message: str) -> None:
        self._record("info", message)

    def warn(self, message: str) -> None:
        self._record("warn", message)

    def success(self, message: str) -> None:
        self._record("success", message)

    def error(self, message: str) -> None:
        self._record("error", message)

    def of_level(self, level: str) -> List[str]:
        return [message for lvl, message in self.messages if lvl == level]


__all__ = ["Reporter", "LoggingReporter", "RecordingReporter"]
