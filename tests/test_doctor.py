from pathlib import Path

from manga_updater.workflows.doctor import build_doctor_report, format_doctor_report
from manga_updater.workflows.store import create_store


def _check(report, name):
    return next(check for check in report["checks"] if check["name"] == name)


def test_doctor_flags_missing_store(tmp_path: Path) -> None:
    report = build_doctor_report(store_path=tmp_path / "absent" / "mangas.csv")

    assert report["ok"] is False
    assert _check(report, "MANGA_UPDATER_STORE_PATH")["status"] == "missing"
    assert _check(report, "store_writable")["status"] == "missing"
    assert all(check["name"] != "store_format" for check in report["checks"])


def test_doctor_reads_existing_store(tmp_path: Path) -> None:
    store = create_store(tmp_path / "mangas.csv")

    report = build_doctor_report(store_path=store)

    assert _check(report, "store_format")["status"] == "ok"
    assert _check(report, "store_format")["detail"] == "0 mangas tracked"
    assert _check(report, "store_writable")["status"] == "ok"
    assert _check(report, "html_parser")["status"] == "ok"
    assert report["ok"] is True


def test_doctor_reports_bad_header(tmp_path: Path) -> None:
    store = tmp_path / "mangas.csv"
    store.write_text("URL,Chapter\n", encoding="utf-8")

    report = build_doctor_report(store_path=store)

    assert _check(report, "store_format")["status"] == "missing"
    assert report["ok"] is False
    assert "remedy:" in format_doctor_report(report)


def test_format_doctor_report_shows_config_values(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("MANGA_UPDATER_CONCURRENCY", "4")

    text = format_doctor_report(build_doctor_report(store_path=tmp_path / "mangas.csv"))

    assert text.startswith("manga-updater doctor\n")
    assert "MANGA_UPDATER_CONCURRENCY: ok (4)" in text
    assert "detail: 4 requests in flight" in text
