from typing import Dict, List, Optional, Union

import pytest

from manga_updater.workflows.errors import NetworkError


def render_series_page(
    title: str = "Solo Leveling",
    chapters: Optional[List[str]] = None,
    base_url: str = "https://readmanganato.com/manga-ax951880",
) -> str:
    """Minimal manganato series page; ``chapters`` are hrefs suffixes, newest first."""
    chapters = ["74", "73"] if chapters is None else chapters
    items = "".join(
        f'<li class="a-h"><a class="chapter-name" href="{base_url}/chapter-{number}">Chapter {number}</a></li>'
        for number in chapters
    )
    return (
        "<html><body>"
        f'<div class="story-info-right"><h1>{title}</h1></div>'
        '<div class="panel-story-chapter-list">'
        f'<ul class="row-content-chapter">{items}</ul>'
        "</div></body></html>"
    )


NOT_FOUND_PAGE = "<html><body><h1>404 - PAGE NOT FOUND</h1></body></html>"


class FakeFetcher:
    """Serves canned bodies by URL; exceptions in the table are raised."""

    def __init__(self, pages: Dict[str, Union[str, Exception]]) -> None:
        self.pages = pages
        self.calls: List[str] = []

    async def fetch(self, url: str) -> str:
        self.calls.append(url)
        page = self.pages.get(url)
        if page is None:
            raise NetworkError(url, "connection refused")
        if isinstance(page, Exception):
            raise page
        return page


@pytest.fixture
def series_page():
    return render_series_page


@pytest.fixture
def not_found_page() -> str:
    return NOT_FOUND_PAGE


@pytest.fixture
def fake_fetcher():
    return FakeFetcher


@pytest.fixture(autouse=True)
def _isolated_store(tmp_path, monkeypatch):
    monkeypatch.setenv("MANGA_UPDATER_STORE_PATH", str(tmp_path / "default" / "mangas.csv"))
    monkeypatch.delenv("MANGA_UPDATER_VERBOSE", raising=False)
    monkeypatch.delenv("MANGA_UPDATER_CONCURRENCY", raising=False)
    monkeypatch.delenv("MANGA_UPDATER_TIMEOUT", raising=False)
    monkeypatch.delenv("MANGA_UPDATER_USER_AGENT", raising=False)
