from pathlib import Path

import pytest

from manga_updater.workflows.errors import ErrorKind, StoreFormatError
from manga_updater.workflows.models import TrackedEntry
from manga_updater.workflows.store import (
    append_entry,
    create_store,
    default_backup_path,
    export_store,
    format_chapter_number,
    is_url_present,
    read_entries,
    resolve_store_path,
    restore,
    write_entries,
)

HEADER = "URL,Last chapter,Title\n"


def test_create_store_writes_header_only(tmp_path: Path) -> None:
    store = create_store(tmp_path / "nested" / "mangas.csv")

    assert store.read_text(encoding="utf-8") == HEADER
    assert read_entries(store) == []
    assert not default_backup_path(store).exists()


def test_write_then_read(tmp_path: Path) -> None:
    store = tmp_path / "mangas.csv"
    entries = [
        TrackedEntry("https://manganato.com/manga-a", 74.0, "Solo, Leveling"),
        TrackedEntry("https://manganato.com/manga-b", 12.5, ""),
    ]

    write_entries(store, entries)

    assert store.read_text(encoding="utf-8") == (
        HEADER + 'https://manganato.com/manga-a,74,"Solo, Leveling"\n' + "https://manganato.com/manga-b,12.5,\n"
    )
    assert read_entries(store) == entries


def test_write_snapshots_previous_state(tmp_path: Path) -> None:
    store = tmp_path / "mangas.csv"
    write_entries(store, [TrackedEntry("https://a", 1.0, "A")])
    before = store.read_text(encoding="utf-8")

    write_entries(store, [TrackedEntry("https://a", 2.0, "A")])

    backup = tmp_path / "mangas.csv.bak"
    assert backup.read_text(encoding="utf-8") == before
    assert read_entries(store)[0].last_chapter == 2.0


def test_read_two_column_rows_and_blank_lines(tmp_path: Path) -> None:
    store = tmp_path / "mangas.csv"
    store.write_text(HEADER + "https://a,3\n\nhttps://b,4.0,B\n", encoding="utf-8")

    assert read_entries(store) == [TrackedEntry("https://a", 3.0, ""), TrackedEntry("https://b", 4.0, "B")]


@pytest.mark.parametrize(
    "content",
    [
        "",
        "URL,Last chapter\nhttps://a,3\n",
        "url,last chapter,title\nhttps://a,3,A\n",
        HEADER + "https://a\n",
        HEADER + "https://a,3,A,extra\n",
        HEADER + "https://a,three,A\n",
    ],
)
def test_read_rejects_malformed_store(tmp_path: Path, content: str) -> None:
    store = tmp_path / "mangas.csv"
    store.write_text(content, encoding="utf-8")

    with pytest.raises(StoreFormatError) as excinfo:
        read_entries(store)

    assert excinfo.value.kind is ErrorKind.STORE_FORMAT


def test_read_missing_store(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        read_entries(tmp_path / "missing.csv")


def test_append_and_presence(tmp_path: Path) -> None:
    store = create_store(tmp_path / "mangas.csv")

    append_entry(store, TrackedEntry("https://a", 7.0, "A"))

    assert is_url_present(store, "https://a")
    assert not is_url_present(store, "https://a/")
    assert default_backup_path(store).read_text(encoding="utf-8") == HEADER


@pytest.mark.parametrize("value, text", [(74.0, "74"), (74.5, "74.5"), (0.0, "0"), (-1.0, "-1"), (3, "3")])
def test_format_chapter_number(value, text) -> None:
    assert format_chapter_number(value) == text


def test_restore_from_snapshot(tmp_path: Path) -> None:
    store = tmp_path / "mangas.csv"
    write_entries(store, [TrackedEntry("https://a", 1.0, "A")])
    write_entries(store, [])

    restored = restore(tmp_path / "mangas.csv.bak")

    assert restored == store
    assert read_entries(store) == [TrackedEntry("https://a", 1.0, "A")]


def test_restore_rejects_bad_paths(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        restore(tmp_path / "mangas.csv")
    (tmp_path / "folder.bak").mkdir()
    with pytest.raises(IsADirectoryError):
        restore(tmp_path / "folder.bak")
    with pytest.raises(FileNotFoundError):
        restore(tmp_path / "absent.csv.bak")


def test_export_creates_directory(tmp_path: Path) -> None:
    store = tmp_path / "mangas.csv"
    write_entries(store, [TrackedEntry("https://a", 1.0, "A")])

    destination = export_store(store, tmp_path / "out" / "deeper")

    assert destination == tmp_path / "out" / "deeper" / "mangas.csv"
    assert destination.read_text(encoding="utf-8") == store.read_text(encoding="utf-8")


def test_default_path_from_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MANGA_UPDATER_STORE_PATH", str(tmp_path / "env.csv"))
    assert resolve_store_path(None) == tmp_path / "env.csv"
    assert resolve_store_path(tmp_path / "explicit.csv") == tmp_path / "explicit.csv"
