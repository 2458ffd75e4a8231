"""CSV record store: strict header, wholesale rewrites, ``.bak`` snapshots."""

from __future__ import annotations

import csv
import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..core.keys import STORE_HEADER
from .errors import StoreFormatError
from .models import TrackedEntry
from .tracker_config import BACKUP_SUFFIX, STORE_FILENAME, default_store_path

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def resolve_store_path(path: Optional[PathLike] = None) -> Path:
    if path:
        return Path(path).expanduser()
    return default_store_path()


def default_backup_path(path: Optional[PathLike] = None) -> Path:
    store = resolve_store_path(path)
    return store.with_name(store.name + BACKUP_SUFFIX)


def format_chapter_number(value: float) -> str:
    """``74.0`` is written ``74``; fractional chapters keep their decimals."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def _parse_row(path: Path, line: int, row: List[str]) -> TrackedEntry:
    if len(row) < 2 or len(row) > len(STORE_HEADER):
        raise StoreFormatError(path, f"expected {len(STORE_HEADER)} columns, found {len(row)}", line)
    url = row[0]
    try:
        number = float(row[1])
    except ValueError:
        raise StoreFormatError(path, f"chapter number {row[1]!r} is not a number", line) from None
    title = row[2] if len(row) > 2 else ""
    return TrackedEntry(url=url, last_chapter=number, title=title)


def read_entries(path: Optional[PathLike] = None) -> List[TrackedEntry]:
    """Load the whole store. A wrong header is fatal: columns are never guessed."""
    store = resolve_store_path(path)
    logger.debug("Beginning processing the CSV at %s", store)
    with store.open("r", encoding="utf-8", newline="") as fh:
        reader = csv.reader(fh)
        header = next(reader, None)
        if header is None:
            raise StoreFormatError(store, "missing header row")
        if tuple(header) != STORE_HEADER:
            raise StoreFormatError(
                store,
                f"header {','.join(header)!r} does not match {','.join(STORE_HEADER)!r}",
                1,
            )
        entries: List[TrackedEntry] = []
        for row in reader:
            if not row:
                continue
            entries.append(_parse_row(store, reader.line_num, row))
    logger.debug("Found %d lines in the CSV.", len(entries))
    return entries


def _write_rows(store: Path, entries: Iterable[TrackedEntry]) -> None:
    store.parent.mkdir(parents=True, exist_ok=True)
    with store.open("w", encoding="utf-8", newline="") as fh:
        writer = csv.writer(fh, lineterminator="\n")
        writer.writerow(STORE_HEADER)
        for entry in entries:
            writer.writerow([entry.url, format_chapter_number(entry.last_chapter), entry.title])


def snapshot(path: Optional[PathLike] = None) -> Path:
    """Copy the store to ``<store>.bak`` and return the copy's path."""
    store = resolve_store_path(path)
    backup = default_backup_path(store)
    shutil.copyfile(store, backup)
    logger.debug("snapshot %s -> %s", store, backup)
    return backup


def write_entries(path: Optional[PathLike], entries: Iterable[TrackedEntry]) -> Path:
    """Replace the store contents; the previous state is kept as a snapshot."""
    store = resolve_store_path(path)
    if store.exists():
        snapshot(store)
    _write_rows(store, entries)
    return store


def create_store(path: Optional[PathLike] = None) -> Path:
    return write_entries(path, [])


def append_entry(path: Optional[PathLike], entry: TrackedEntry) -> Path:
    """Add one line at the end; the store must already exist."""
    store = resolve_store_path(path)
    entries = read_entries(store)
    entries.append(entry)
    return write_entries(store, entries)


def is_url_present(path: Optional[PathLike], url: str) -> bool:
    return any(entry.url == url for entry in read_entries(path))


def restore(backup_path: Optional[PathLike] = None) -> Path:
    """Overwrite the live store with its snapshot; returns the restored path."""
    backup = Path(backup_path).expanduser() if backup_path else default_backup_path()
    if not backup.name.endswith(BACKUP_SUFFIX):
        raise ValueError(f"The supplied path is incorrect. The extension should be {BACKUP_SUFFIX}: {backup}")
    if backup.is_dir():
        raise IsADirectoryError(f"The path should point to the backup CSV file: {backup}")
    if not backup.is_file():
        raise FileNotFoundError(f"Backup not found: {backup}")
    target = backup.with_name(backup.name[: -len(BACKUP_SUFFIX)])
    shutil.copyfile(backup, target)
    logger.debug("Restored CSV from %s", backup)
    return target


def export_store(path: Optional[PathLike], out_dir: PathLike) -> Path:
    """Copy the store into ``out_dir`` as ``mangas.csv``."""
    store = resolve_store_path(path)
    destination_dir = Path(out_dir).expanduser()
    destination_dir.mkdir(parents=True, exist_ok=True)
    destination = destination_dir / STORE_FILENAME
    shutil.copyfile(store, destination)
    return destination


__all__ = [
    "append_entry",
    "create_store",
    "default_backup_path",
    "export_store",
    "format_chapter_number",
    "is_url_present",
    "read_entries",
    "resolve_store_path",
    "restore",
    "snapshot",
    "write_entries",
]
