from __future__ import annotations

import importlib.util
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .errors import StoreFormatError
from .page_fetch import FetchConfig
from .store import default_backup_path, read_entries, resolve_store_path
from .tracker_config import (
    ENV_CONCURRENCY,
    ENV_STORE_PATH,
    ENV_TIMEOUT,
    ENV_USER_AGENT,
    HTML_PARSER,
)


def _check_module_available(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


def _check_writable(path: Path) -> bool:
    if path.exists():
        return os.access(path, os.W_OK)
    parent = path.parent
    if not parent.exists():
        return False
    return os.access(parent, os.W_OK)


def build_doctor_report(*, store_path: Optional[Path] = None) -> Dict[str, Any]:
    report: Dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "ok": True,
        "checks": [],
    }

    def add_check(
        name: str,
        status: bool,
        *,
        detail: Optional[str] = None,
        remedy: Optional[str] = None,
        level: str = "warn",
        value: Optional[str] = None,
    ) -> None:
        entry = {
            "name": name,
            "status": "ok" if status else "missing",
            "level": level,
            "detail": detail,
        }
        if remedy:
            entry["remedy"] = remedy
        if value is not None:
            entry["value"] = value
        report["checks"].append(entry)
        if not status and level == "warn":
            report["ok"] = False

    store = resolve_store_path(store_path)
    exists = store.is_file()
    add_check(
        ENV_STORE_PATH,
        exists,
        detail=str(store),
        remedy="Run `manga-updater init` or point MANGA_UPDATER_STORE_PATH / --path at an existing CSV.",
        level="warn",
    )
    if exists:
        try:
            entries = read_entries(store)
        except (OSError, StoreFormatError) as exc:
            add_check(
                "store_format",
                False,
                detail=str(exc),
                remedy="Restore a snapshot with `manga-updater undo` or fix the header to URL,Last chapter,Title.",
                level="warn",
            )
        else:
            add_check("store_format", True, detail=f"{len(entries)} mangas tracked", level="info")

    add_check(
        "store_writable",
        _check_writable(store),
        detail=str(store),
        remedy="Create the store directory or choose a writable --path.",
        level="warn",
    )

    backup = default_backup_path(store)
    add_check(
        "snapshot",
        backup.is_file(),
        detail=str(backup),
        remedy="A snapshot is written before every change; `undo` needs one.",
        level="info",
    )

    parser_ok = _check_module_available(HTML_PARSER)
    add_check(
        "html_parser",
        parser_ok,
        detail=f"BeautifulSoup backend {HTML_PARSER}",
        remedy="pip install lxml",
        level="warn",
    )

    config = FetchConfig.from_env()
    add_check(
        ENV_CONCURRENCY,
        True,
        detail="unlimited" if config.concurrency == 0 else f"{config.concurrency} requests in flight",
        level="info",
        value=str(config.concurrency),
    )
    add_check(
        ENV_TIMEOUT,
        True,
        detail="aiohttp default" if config.timeout == 0 else f"{config.timeout:g}s total",
        level="info",
        value=str(config.timeout),
    )
    add_check(
        ENV_USER_AGENT,
        bool(os.getenv(ENV_USER_AGENT)),
        detail="custom User-Agent" if os.getenv(ENV_USER_AGENT) else "built-in User-Agent",
        level="info",
    )
    return report


def format_doctor_report(report: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append("manga-updater doctor")
    lines.append(f"Generated: {report.get('generated_at')}")
    lines.append("")
    for check in report.get("checks", []):
        name = check.get("name", "check")
        status = check.get("status", "unknown")
        level = check.get("level", "info")
        detail = check.get("detail")
        value = check.get("value")
        label = f"{name}: {status}"
        if value:
            label = f"{label} ({value})"
        lines.append(f"- [{level}] {label}")
        if detail:
            lines.append(f"  detail: {detail}")
        remedy = check.get("remedy")
        if remedy and status != "ok":
            lines.append(f"  remedy: {remedy}")
    return "\n".join(lines).rstrip() + "\n"
