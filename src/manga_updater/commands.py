from __future__ import annotations

import webbrowser
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .core.keys import K_ERROR, K_POSITION, K_URL
from .workflows.alternate_urls import URLHealthChecker, check_all
from .workflows.chapter_resolver import resolve_batch, resolve_one, select_positions
from .workflows.errors import ResolverError
from .workflows.models import BatchReport, HealthResult, TrackedEntry
from .workflows.page_fetch import FetchConfig, PageFetcher, open_session, run_in_fetch_loop
from .workflows.reconcile import (
    apply_chapter_updates,
    find_entry,
    merge_new_entries,
    remove_entry,
    reset_entry_chapter_at_position,
    updates_from_batch,
)
from .workflows.reporter import LoggingReporter, Reporter
from .workflows.store import (
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

EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_USAGE = 2
EXIT_FATAL = 3

Summary = Dict[str, Any]
CommandResult = Tuple[Summary, int]


def _now() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _summary(command: str, store: Path, **extra: Any) -> Summary:
    payload: Summary = {"command": command, "store": str(store), "generated_at": _now()}
    payload.update(extra)
    return payload


def _positions_by_url(entries: Sequence[TrackedEntry]) -> Dict[str, int]:
    positions: Dict[str, int] = {}
    for idx, entry in enumerate(entries, start=1):
        positions.setdefault(entry.url, idx)
    return positions


def _batch_items(entries: Sequence[TrackedEntry], report: BatchReport) -> List[Dict[str, Any]]:
    """Batch results put back in store order, each tagged with its line number."""
    positions = _positions_by_url(entries)
    items: List[Dict[str, Any]] = []
    for item in report.items:
        payload = item.to_dict()
        payload[K_POSITION] = positions.get(item.entry.url)
        items.append(payload)
    items.sort(key=lambda payload: payload.get(K_POSITION) or 0)
    return items


def _num(value: float) -> str:
    return format_chapter_number(value)


def run_init(path: Optional[Path], *, reporter: Optional[Reporter] = None) -> CommandResult:
    rep = reporter or LoggingReporter()
    store = create_store(path)
    rep.success(f"The file has been created at {store}, the program is ready to use.")
    return _summary("init", store), EXIT_OK


def run_list(
    path: Optional[Path],
    *,
    only_new: bool = False,
    soft_fail: bool = True,
    config: Optional[FetchConfig] = None,
    reporter: Optional[Reporter] = None,
) -> CommandResult:
    rep = reporter or LoggingReporter()
    store = resolve_store_path(path)
    entries = read_entries(store)
    if rep.verbose:
        rep.info(f"Fetched {len(entries)} lines in the CSV.")
    report = run_in_fetch_loop(resolve_batch(entries, config=config, reporter=rep))
    items = _batch_items(entries, report)
    if only_new:
        items = [item for item in items if item.get("has_update")]
    summary = _summary("list", store, counts=report.counts(), items=items)
    exit_code = EXIT_OK
    if report.failures and not soft_fail:
        exit_code = EXIT_PARTIAL
    return summary, exit_code


def run_add(
    path: Optional[Path],
    url: str,
    *,
    config: Optional[FetchConfig] = None,
    reporter: Optional[Reporter] = None,
) -> CommandResult:
    rep = reporter or LoggingReporter()
    store = resolve_store_path(path)
    if is_url_present(store, url):
        rep.warn("The manga is already present!")
        return _summary("add", store, added=False), EXIT_OK
    try:
        chapter = run_in_fetch_loop(resolve_one(url, config=config, reporter=rep))
    except ResolverError as exc:
        rep.error(f"Error during the add: {exc.reason}")
        return _summary("add", store, added=False, error=exc.reason), EXIT_PARTIAL
    entry = TrackedEntry(url=url, last_chapter=chapter.chapter_number, title=chapter.series_title)
    append_entry(store, entry)
    rep.success(f"{entry.title} has been added at chapter {_num(entry.last_chapter)}.")
    return _summary("add", store, added=True), EXIT_OK


def _select_for_update(entries: Sequence[TrackedEntry], targets: Sequence[str]) -> List[TrackedEntry]:
    tokens: List[str] = []
    for target in targets:
        tokens.extend(token for token in target.split() if token)
    if not tokens or tokens == ["all"]:
        return list(entries)
    return select_positions(entries, tokens)


def run_update(
    path: Optional[Path],
    targets: Sequence[str] = (),
    *,
    soft_fail: bool = False,
    config: Optional[FetchConfig] = None,
    reporter: Optional[Reporter] = None,
) -> CommandResult:
    rep = reporter or LoggingReporter()
    store = resolve_store_path(path)
    entries = read_entries(store)
    selected = _select_for_update(entries, targets)
    if not selected:
        rep.info("Nothing to update.")
        return _summary("update", store, counts=BatchReport().counts(), items=[]), EXIT_OK

    report = run_in_fetch_loop(resolve_batch(selected, config=config, reporter=rep))
    items = _batch_items(entries, report)
    summary = _summary("update", store, counts=report.counts(), items=items)

    merged = apply_chapter_updates(entries, updates_from_batch(report))
    if merged == list(entries):
        if len(selected) == 1 and report.successes:
            rep.info("This manga is already up to date!")
        summary["written"] = False
    else:
        write_entries(store, merged)
        summary["written"] = True
        for pair in report.updated:
            rep.success(
                f"{pair.chapter.series_title}: {_num(pair.entry.last_chapter)} -> {_num(pair.chapter.chapter_number)}"
            )
        if report.failures:
            rep.success(f"{len(report.successes)} mangas have been updated to their most recent chapter.")
        else:
            rep.success("All the mangas have been updated to their most recent chapter.")

    exit_code = EXIT_OK
    if report.failures and not soft_fail:
        exit_code = EXIT_PARTIAL
    return summary, exit_code


def run_remove(path: Optional[Path], target: str, *, reporter: Optional[Reporter] = None) -> CommandResult:
    rep = reporter or LoggingReporter()
    store = resolve_store_path(path)
    entries = read_entries(store)
    try:
        remaining = remove_entry(entries, target)
    except IndexError as exc:
        rep.error(f"The line number is out of bounds, please try again (the list command may be helpful): {exc}")
        return _summary("remove", store, removed=0), EXIT_USAGE
    removed = len(entries) - len(remaining)
    if not removed:
        rep.warn("The URL you asked for is not present.")
        return _summary("remove", store, removed=0), EXIT_USAGE
    write_entries(store, remaining)
    rep.success("The manga has been deleted, be aware that the order might have changed.")
    return _summary("remove", store, removed=removed), EXIT_OK


def run_open(
    path: Optional[Path],
    target: str,
    *,
    direct: bool = False,
    mark_read: bool = False,
    opener: Optional[Callable[[str], Any]] = None,
    config: Optional[FetchConfig] = None,
    reporter: Optional[Reporter] = None,
) -> CommandResult:
    rep = reporter or LoggingReporter()
    launch = opener or webbrowser.open
    store = resolve_store_path(path)
    entries = read_entries(store)
    entry = find_entry(entries, target)
    if entry is None:
        if target.strip().isdigit():
            rep.error("The line number is out of bounds, please try again (the list command may be helpful).")
        else:
            rep.error("The URL you asked for is not present.")
        return _summary("open", store, opened=None), EXIT_USAGE
    if not direct:
        launch(entry.url)
        return _summary("open", store, opened=entry.url), EXIT_OK

    try:
        chapter = run_in_fetch_loop(resolve_one(entry.url, config=config, reporter=rep))
    except ResolverError as exc:
        rep.error(f"Error while fetching the last chapter: {exc.reason}")
        return _summary("open", store, opened=None, error=exc.reason), EXIT_PARTIAL
    launch(chapter.chapter_url)
    written = False
    if mark_read and chapter.chapter_number > entry.last_chapter:
        update = TrackedEntry(entry.url, chapter.chapter_number, chapter.series_title)
        write_entries(store, apply_chapter_updates(entries, [update]))
        written = True
        rep.info(f"{chapter.series_title} marked as read up to chapter {_num(chapter.chapter_number)}.")
    return _summary("open", store, opened=chapter.chapter_url, written=written), EXIT_OK


def run_unread(path: Optional[Path], position: str, *, reporter: Optional[Reporter] = None) -> CommandResult:
    rep = reporter or LoggingReporter()
    store = resolve_store_path(path)
    try:
        number = int(position.strip())
    except ValueError:
        rep.error(f"{position!r} is not a line number.")
        return _summary("unread", store, reset=False), EXIT_USAGE
    entries = read_entries(store)
    if rep.verbose:
        rep.info(f"Resetting chapter at position {number}")
    reset = reset_entry_chapter_at_position(entries, number - 1)
    if reset == entries:
        rep.warn("The line number is out of bounds, nothing was reset.")
        return _summary("unread", store, reset=False), EXIT_USAGE
    write_entries(store, reset)
    rep.success("The manga has been reset to its previous chapter.")
    return _summary("unread", store, reset=True, position=number), EXIT_OK


def run_undo(backup: Optional[Path], *, path: Optional[Path] = None, reporter: Optional[Reporter] = None) -> CommandResult:
    rep = reporter or LoggingReporter()
    source = backup
    if source is None:
        source = default_backup_path(path)
    restored = restore(source)
    rep.success("The CSV has been restored to the previous state.")
    return _summary("undo", restored, backup=str(source)), EXIT_OK


def run_export(path: Optional[Path], out_dir: Path, *, reporter: Optional[Reporter] = None) -> CommandResult:
    rep = reporter or LoggingReporter()
    store = resolve_store_path(path)
    destination = export_store(store, out_dir)
    rep.success(f"File has been exported to {destination}")
    return _summary("export", store, exported_to=str(destination)), EXIT_OK


def run_import(
    path: Optional[Path],
    source: Path,
    *,
    overwrite: bool = False,
    reporter: Optional[Reporter] = None,
) -> CommandResult:
    rep = reporter or LoggingReporter()
    store = resolve_store_path(path)
    imported = read_entries(source)
    if overwrite:
        if rep.verbose:
            rep.info("Overwrite is set, the old lines will be deleted.")
        write_entries(store, imported)
        added = len(imported)
    else:
        current = read_entries(store)
        merged = merge_new_entries(imported, current)
        added = len(merged) - len(current)
        if rep.verbose:
            rep.info(f"This will add {added} new lines to the CSV.")
        write_entries(store, merged)
    rep.success("The file has been imported.")
    return _summary("import", store, source=str(source), added=added, overwrite=overwrite), EXIT_OK


async def _survey_urls(
    entries: Sequence[TrackedEntry],
    config: FetchConfig,
    reporter: Reporter,
) -> Tuple[List[HealthResult], Dict[str, Optional[str]]]:
    """Concurrent phase of fix-urls: health of every URL, then mirror candidates."""
    async with open_session(config) as session:
        checker = URLHealthChecker(PageFetcher(session, config), reporter)
        results = await check_all(checker, entries)
        dead = [result.entry for result in results if result.unreachable]
        replacements: Dict[str, Optional[str]] = {}
        for entry in dead:
            replacements[entry.url] = await checker.find_replacement_url(entry)
    return results, replacements


def run_fix_urls(
    path: Optional[Path],
    *,
    ask: Optional[Callable[[str], str]] = None,
    config: Optional[FetchConfig] = None,
    reporter: Optional[Reporter] = None,
) -> CommandResult:
    """Repair dead series URLs: mirror rewrite first, then ``ask`` the operator."""
    rep = reporter or LoggingReporter()
    cfg = config or FetchConfig()
    store = resolve_store_path(path)
    entries = read_entries(store)
    if rep.verbose:
        rep.info("Fetching the pages to find missing mangas...")
    results, replacements = run_in_fetch_loop(_survey_urls(entries, cfg, rep))
    health = {result.entry.url: result for result in results}

    fixed: List[TrackedEntry] = []
    items: List[Dict[str, Any]] = []
    for entry in entries:
        result = health.get(entry.url)
        item: Dict[str, Any] = {K_URL: entry.url}
        if result is None or result.error is not None:
            reason = result.error.reason if result is not None and result.error is not None else "not checked"
            rep.warn(f"Could not check {entry.url}: {reason}")
            item[K_ERROR] = reason
            fixed.append(entry)
        elif not result.unreachable:
            if rep.verbose:
                rep.info(f"{entry.url} is okay, no need to change it.")
            fixed.append(entry)
        else:
            new_url = replacements.get(entry.url)
            if new_url:
                rep.success(f"The manga URL {new_url} has been updated!")
            elif ask is not None:
                answer = (ask(entry.url) or "").strip()
                new_url = answer or None
            if new_url and new_url != entry.url:
                item["new_url"] = new_url
                fixed.append(entry.with_url(new_url))
            else:
                fixed.append(entry)
        items.append(item)

    changed = sum(1 for item in items if item.get("new_url"))
    errors = sum(1 for item in items if item.get(K_ERROR))
    if changed:
        write_entries(store, fixed)
        rep.success("The lines have been updated!")
    summary = _summary(
        "fix-urls",
        store,
        counts={"total": len(entries), "changed": changed, "failed": errors},
        items=items,
    )
    return summary, EXIT_PARTIAL if errors else EXIT_OK


__all__ = [
    "EXIT_OK",
    "EXIT_PARTIAL",
    "EXIT_USAGE",
    "EXIT_FATAL",
    "run_add",
    "run_export",
    "run_fix_urls",
    "run_import",
    "run_init",
    "run_list",
    "run_open",
    "run_remove",
    "run_undo",
    "run_unread",
    "run_update",
]
