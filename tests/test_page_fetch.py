import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from manga_updater.workflows.chapter_resolver import resolve_batch, resolve_one
from manga_updater.workflows.errors import ErrorKind, NetworkError
from manga_updater.workflows.models import TrackedEntry
from manga_updater.workflows.page_fetch import FetchConfig, PageFetcher, decode_body, fetch_page, open_session
from manga_updater.workflows.reporter import RecordingReporter


def _site(series_page, not_found_page):
    seen_agents = []

    async def series(request: web.Request) -> web.Response:
        seen_agents.append(request.headers.get("User-Agent"))
        name = request.match_info["name"]
        return web.Response(text=series_page(title=name.upper(), chapters=["42", "41"]), content_type="text/html")

    async def gone(request: web.Request) -> web.Response:
        # the host answers dead pages with a 200 and its own 404 body
        return web.Response(text=not_found_page, content_type="text/html")

    app = web.Application()
    app.router.add_get("/manga/{name}", series)
    app.router.add_get("/gone", gone)
    return app, seen_agents


def test_fetch_reuses_pooled_session(series_page, not_found_page) -> None:
    app, seen_agents = _site(series_page, not_found_page)

    async def scenario():
        async with TestServer(app) as server:
            config = FetchConfig(user_agent="tracker-test/1.0")
            async with open_session(config) as session:
                fetcher = PageFetcher(session, config)
                first = await fetcher.fetch(str(server.make_url("/manga/one")))
                second = await fetcher.fetch(str(server.make_url("/gone")))
            return first, second

    first, second = asyncio.run(scenario())

    assert "ONE" in first
    assert "404 - PAGE NOT FOUND" in second
    assert seen_agents == ["tracker-test/1.0"]


def test_fetch_page_one_off_session(series_page, not_found_page) -> None:
    app, _ = _site(series_page, not_found_page)

    async def scenario():
        async with TestServer(app) as server:
            return await fetch_page(str(server.make_url("/manga/two")))

    assert "TWO" in asyncio.run(scenario())


def test_fetch_failure_becomes_network_error() -> None:
    with pytest.raises(NetworkError) as excinfo:
        asyncio.run(PageFetcher().fetch("not a url"))
    assert excinfo.value.kind is ErrorKind.NETWORK
    assert excinfo.value.url == "not a url"


def test_resolve_batch_against_live_server(series_page, not_found_page) -> None:
    app, _ = _site(series_page, not_found_page)
    reporter = RecordingReporter()

    async def scenario():
        async with TestServer(app) as server:
            entries = [
                TrackedEntry(str(server.make_url("/manga/alpha")), 40.0, "Alpha"),
                TrackedEntry(str(server.make_url("/manga/beta")), 42.0, "Beta"),
                TrackedEntry(str(server.make_url("/gone")), 3.0, "Gone"),
            ]
            report = await resolve_batch(entries, config=FetchConfig(concurrency=2, timeout=5), reporter=reporter)
            single = await resolve_one(entries[0].url, reporter=reporter)
            return report, single

    report, single = asyncio.run(scenario())

    assert report.counts() == {"total": 3, "ok": 2, "failed": 1, "updated": 1}
    assert report.failures[0].error.kind is ErrorKind.TITLE_CONTAINER_MISSING
    assert [pair.entry.title for pair in report.updated] == ["Alpha"]
    assert single.series_title == "ALPHA"
    assert single.chapter_number == 42.0
    assert reporter.of_level("warn") == ["1 of 3 mangas could not be checked."]


def test_fetch_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("MANGA_UPDATER_CONCURRENCY", "8")
    monkeypatch.setenv("MANGA_UPDATER_TIMEOUT", "2.5")
    monkeypatch.setenv("MANGA_UPDATER_USER_AGENT", "custom-agent")

    config = FetchConfig.from_env()

    assert config.concurrency == 8
    assert config.timeout == 2.5
    assert config.headers["User-Agent"] == "custom-agent"


def test_fetch_config_defaults() -> None:
    config = FetchConfig.from_env()
    assert config.concurrency == 0
    assert config.timeout == 0.0
    assert config.headers["User-Agent"]


def test_declared_charset_is_honored() -> None:
    page = (
        '<div class="story-info-right"><h1>Café à la carte</h1></div>'
        '<ul class="row-content-chapter"><li><a href="/cafe/chapter-8">Chapitre 8 : Crème</a></li></ul>'
    )

    async def legacy(request: web.Request) -> web.Response:
        return web.Response(
            body=page.encode("cp1252"),
            headers={"Content-Type": "text/html; charset=windows-1252"},
        )

    app = web.Application()
    app.router.add_get("/cafe", legacy)

    async def scenario():
        async with TestServer(app) as server:
            return await resolve_one(str(server.make_url("/cafe")))

    chapter = asyncio.run(scenario())

    assert chapter.series_title == "Café à la carte"
    assert chapter.chapter_title == "Chapitre 8 : Crème"
    assert chapter.chapter_number == 8.0


def test_decode_body_fallbacks() -> None:
    assert decode_body("Café".encode("utf-8")) == "Café"
    assert decode_body("Café".encode("utf-8"), "x-no-such-charset") == "Café"
    assert decode_body(b"caf\xe9 \xff", "utf-8") == "caf\ufffd \ufffd"
    assert isinstance(decode_body(b"\x81\xfe\xff broken"), str)
