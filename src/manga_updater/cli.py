from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import typer

from .commands import (
    EXIT_FATAL,
    EXIT_USAGE,
    CommandResult,
    run_add,
    run_export,
    run_fix_urls,
    run_import,
    run_init,
    run_list,
    run_open,
    run_remove,
    run_undo,
    run_unread,
    run_update,
)
from .core.keys import (
    K_CHAPTER_TITLE,
    K_CHAPTER_URL,
    K_ERROR,
    K_HAS_UPDATE,
    K_LAST_CHAPTER,
    K_LATEST_CHAPTER,
    K_POSITION,
    K_TITLE,
    K_URL,
)
from .workflows.doctor import build_doctor_report, format_doctor_report
from .workflows.errors import TrackerError
from .workflows.page_fetch import FetchConfig
from .workflows.store import format_chapter_number
from .workflows.tracker_config import ENV_VERBOSE, MIRROR_SEARCH_URL, env_bool

app = typer.Typer(add_help_option=False, no_args_is_help=False)


class ConsoleReporter:
    """Reporter printing colored lines; warnings and errors go to stderr."""

    def __init__(self, verbose: bool = False) -> None:
        self.verbose = verbose

    def info(self, message: str) -> None:
        typer.echo(message)

    def warn(self, message: str) -> None:
        typer.secho(message, fg=typer.colors.YELLOW, err=True)

    def success(self, message: str) -> None:
        typer.secho(message, fg=typer.colors.GREEN)

    def error(self, message: str) -> None:
        typer.secho(message, fg=typer.colors.RED, err=True)


class _SilentReporter(ConsoleReporter):
    """Used with --json: stdout carries the summary only."""

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass


def _minimal_help() -> str:
    return """manga-updater (reading-progress tracker)

Usage:
  manga-updater init
  manga-updater list [--new] [--json]
  manga-updater add <url>
  manga-updater update [all | <position>...] [--soft-fail] [--json]
  manga-updater remove <position|url>
  manga-updater open <position|url> [--direct [--mark-read]]
  manga-updater unread <position>
  manga-updater undo [--backup <PATH>]
  manga-updater export <DIR>
  manga-updater import <FILE> [--overwrite]
  manga-updater fix-urls
  manga-updater doctor

Common options:
  --path, -p <CSV>  Use this store instead of the default one.
  --verbose, -v     Print progress and per-item detail (before or after the command).

Discoverability:
  --help-full     Expanded help + env vars + files.
  --find <query>  Search commands, flags, env vars, files.
  --doctor        Run environment diagnostics and exit.
"""


def _help_full() -> str:
    return """manga-updater CLI

Commands:
  init       Create an empty store (header only).
  list       Show every manga with the last chapter read and the latest one.
  add        Track a new manga, starting at its latest chapter.
  update     Mark mangas as read up to their latest chapter.
  remove     Stop tracking a manga.
  open       Open a manga page (or its latest chapter with --direct).
  unread     Step a manga back by one chapter.
  undo       Restore the store from its snapshot.
  export     Copy the store into a directory.
  import     Merge (or --overwrite with) another store file.
  fix-urls   Find dead manga pages and repair their URLs.
  doctor     Print environment and dependency diagnostics.

Files:
  mangas.csv       The store, header URL,Last chapter,Title.
  mangas.csv.bak   Snapshot written before every change; used by undo.

Important env vars:
  MANGA_UPDATER_STORE_PATH
  MANGA_UPDATER_CONCURRENCY
  MANGA_UPDATER_TIMEOUT
  MANGA_UPDATER_USER_AGENT
  MANGA_UPDATER_VERBOSE

Exit codes:
  0  ok
  1  some mangas could not be checked
  2  bad input (unknown line, wrong backup path)
  3  the store could not be read or written

Troubleshooting:
  - A header mismatch is never repaired automatically; run undo or fix the file.
  - Use fix-urls when a manga keeps failing with a missing title container.
"""


_FIND_INDEX = [
    ("command", "init", "Create an empty store."),
    ("command", "list", "Show last read and latest chapters."),
    ("command", "add", "Track a new manga."),
    ("command", "update", "Mark mangas as read up to their latest chapter."),
    ("command", "remove", "Stop tracking a manga."),
    ("command", "open", "Open a manga page in the browser."),
    ("command", "unread", "Step a manga back by one chapter."),
    ("command", "undo", "Restore the store from its snapshot."),
    ("command", "export", "Copy the store into a directory."),
    ("command", "import", "Merge or overwrite with another store."),
    ("command", "fix-urls", "Repair dead manga URLs."),
    ("command", "doctor", "Print environment and dependency diagnostics."),
    ("flag", "--path", "Use this store instead of the default one."),
    ("flag", "--verbose", "Print progress and per-item detail."),
    ("flag", "--new", "List only mangas with a new chapter."),
    ("flag", "--json", "Print summary JSON to stdout only."),
    ("flag", "--soft-fail", "Exit 0 even if some mangas fail."),
    ("flag", "--direct", "Open the latest chapter instead of the manga page."),
    ("flag", "--mark-read", "With --direct, record the opened chapter as read."),
    ("flag", "--backup", "Snapshot file to restore from."),
    ("flag", "--overwrite", "Replace the store instead of merging."),
    ("flag", "--help-full", "Expanded help, env vars, files."),
    ("flag", "--find", "Search commands, flags, env vars, files."),
    ("flag", "--doctor", "Run environment diagnostics and exit."),
    ("env", "MANGA_UPDATER_STORE_PATH", "Default store path."),
    ("env", "MANGA_UPDATER_CONCURRENCY", "Max requests in flight, 0 for unlimited."),
    ("env", "MANGA_UPDATER_TIMEOUT", "Total request timeout in seconds."),
    ("env", "MANGA_UPDATER_USER_AGENT", "User-Agent header sent to the site."),
    ("env", "MANGA_UPDATER_VERBOSE", "Verbose output by default."),
    ("file", "mangas.csv", "The store."),
    ("file", "mangas.csv.bak", "Snapshot used by undo."),
]


def _run_find(query: str) -> str:
    needle = (query or "").strip().lower()
    if not needle:
        return ""
    lines = []
    for category, name, desc in _FIND_INDEX:
        haystack = f"{category} {name} {desc}".lower()
        if needle in haystack:
            lines.append(f"{category} {name} - {desc}")
    return "\n".join(lines)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(format="%(message)s", level=logging.INFO if verbose else logging.WARNING)


def _verbose(ctx: typer.Context) -> bool:
    obj = ctx.obj or {}
    return bool(obj.get("verbose"))


def _reporter(ctx: typer.Context, json_out: bool = False, verbose: bool = False) -> ConsoleReporter:
    if json_out:
        return _SilentReporter(verbose=False)
    if verbose:
        logging.getLogger().setLevel(logging.INFO)
    return ConsoleReporter(verbose=verbose or _verbose(ctx))


def _execute(action: Callable[[], CommandResult], *, json_out: bool = False) -> Dict[str, Any]:
    """Run a command, mapping store failures onto exit codes."""
    try:
        summary, exit_code = action()
    except ValueError as exc:
        if not json_out:
            typer.secho(f"error: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_USAGE)
    except (OSError, TrackerError) as exc:
        if not json_out:
            typer.secho(f"fatal: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=EXIT_FATAL)
    if json_out:
        sys.stdout.write(json.dumps(summary, ensure_ascii=False) + "\n")
    if exit_code:
        raise typer.Exit(code=exit_code)
    return summary


def _chapter(value: Any) -> str:
    if value is None:
        return "?"
    return format_chapter_number(value)


def _print_items(items: List[Dict[str, Any]]) -> None:
    for item in items:
        position = item.get(K_POSITION)
        if item.get(K_ERROR):
            typer.secho(f"{position}: {item.get(K_URL)} - {item.get(K_ERROR)}", fg=typer.colors.YELLOW)
            continue
        line = (
            f"{position}: {item.get(K_TITLE)} "
            f"[{_chapter(item.get(K_LAST_CHAPTER))} / {_chapter(item.get(K_LATEST_CHAPTER))}] "
            f"{item.get(K_CHAPTER_TITLE)} {item.get(K_CHAPTER_URL)}"
        )
        if item.get(K_HAS_UPDATE):
            typer.secho(line, fg=typer.colors.GREEN, bold=True)
        else:
            typer.echo(line)


PathOption = typer.Option(None, "--path", "-p", help="Store CSV to use instead of the default one.")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Print progress and per-item detail.")


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    help: bool = typer.Option(False, "--help", "-h", is_eager=True, help="Show minimal help."),
    help_full: bool = typer.Option(False, "--help-full", is_eager=True, help="Show expanded help."),
    find: Optional[str] = typer.Option(None, "--find", is_eager=True, help="Search commands, flags, env vars, files."),
    doctor: bool = typer.Option(False, "--doctor", is_eager=True, help="Run environment diagnostics and exit."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print progress and per-item detail."),
) -> None:
    if help_full:
        typer.echo(_help_full())
        raise typer.Exit(code=0)
    if find is not None:
        output = _run_find(find)
        if output:
            typer.echo(output)
        raise typer.Exit(code=0)
    if doctor:
        report = build_doctor_report()
        typer.echo(format_doctor_report(report))
        raise typer.Exit(code=0 if report.get("ok", True) else 2)
    if help or ctx.invoked_subcommand is None:
        typer.echo(_minimal_help())
        raise typer.Exit(code=0)
    verbose = verbose or env_bool(ENV_VERBOSE)
    _configure_logging(verbose)
    ctx.obj = {"verbose": verbose}


@app.command("doctor", add_help_option=True)
def doctor_cmd(path: Optional[Path] = PathOption) -> None:
    """Print environment and dependency diagnostics."""
    report = build_doctor_report(store_path=path)
    typer.echo(format_doctor_report(report))
    raise typer.Exit(code=0 if report.get("ok", True) else 2)


@app.command("init", add_help_option=True)
def init_cmd(
    ctx: typer.Context,
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
) -> None:
    """Create an empty store."""
    rep = _reporter(ctx, verbose=verbose)
    _execute(lambda: run_init(path, reporter=rep))


@app.command("list", add_help_option=True)
def list_cmd(
    ctx: typer.Context,
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
    new: bool = typer.Option(False, "--new", help="Only show mangas with a new chapter."),
    json_out: bool = typer.Option(False, "--json", help="Print summary JSON to stdout only."),
) -> None:
    """Show the last chapter read and the latest chapter of every manga."""
    rep = _reporter(ctx, json_out, verbose)
    summary = _execute(
        lambda: run_list(path, only_new=new, config=FetchConfig.from_env(), reporter=rep),
        json_out=json_out,
    )
    if not json_out:
        _print_items(summary.get("items", []))


@app.command("add", add_help_option=True)
def add_cmd(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="URL of the manga page."),
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
) -> None:
    """Track a new manga, starting at its latest chapter."""
    rep = _reporter(ctx, verbose=verbose)
    _execute(lambda: run_add(path, url, config=FetchConfig.from_env(), reporter=rep))


@app.command("update", add_help_option=True)
def update_cmd(
    ctx: typer.Context,
    targets: Optional[List[str]] = typer.Argument(None, help="'all' or line numbers (see list)."),
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
    soft_fail: bool = typer.Option(False, "--soft-fail", help="Exit 0 even if some mangas fail."),
    json_out: bool = typer.Option(False, "--json", help="Print summary JSON to stdout only."),
) -> None:
    """Mark mangas as read up to their latest chapter."""
    rep = _reporter(ctx, json_out, verbose)
    _execute(
        lambda: run_update(
            path,
            targets or [],
            soft_fail=soft_fail,
            config=FetchConfig.from_env(),
            reporter=rep,
        ),
        json_out=json_out,
    )


@app.command("remove", add_help_option=True)
def remove_cmd(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Line number or URL of the manga."),
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
) -> None:
    """Stop tracking a manga."""
    rep = _reporter(ctx, verbose=verbose)
    _execute(lambda: run_remove(path, target, reporter=rep))


@app.command("open", add_help_option=True)
def open_cmd(
    ctx: typer.Context,
    target: str = typer.Argument(..., help="Line number or URL of the manga."),
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
    direct: bool = typer.Option(False, "--direct", help="Open the latest chapter instead of the manga page."),
    mark_read: bool = typer.Option(False, "--mark-read", help="With --direct, record the opened chapter as read."),
) -> None:
    """Open a manga page in the browser."""
    rep = _reporter(ctx, verbose=verbose)
    _execute(
        lambda: run_open(
            path,
            target,
            direct=direct,
            mark_read=mark_read,
            config=FetchConfig.from_env(),
            reporter=rep,
        )
    )


@app.command("unread", add_help_option=True)
def unread_cmd(
    ctx: typer.Context,
    position: str = typer.Argument(..., help="Line number of the manga (see list)."),
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
) -> None:
    """Step a manga back by one chapter."""
    rep = _reporter(ctx, verbose=verbose)
    _execute(lambda: run_unread(path, position, reporter=rep))


@app.command("undo", add_help_option=True)
def undo_cmd(
    ctx: typer.Context,
    backup: Optional[Path] = typer.Option(None, "--backup", help="Snapshot file to restore from."),
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
) -> None:
    """Restore the store from its snapshot."""
    rep = _reporter(ctx, verbose=verbose)
    _execute(lambda: run_undo(backup, path=path, reporter=rep))


@app.command("export", add_help_option=True)
def export_cmd(
    ctx: typer.Context,
    out_dir: Path = typer.Argument(..., help="Directory receiving mangas.csv."),
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
) -> None:
    """Copy the store into a directory."""
    rep = _reporter(ctx, verbose=verbose)
    _execute(lambda: run_export(path, out_dir, reporter=rep))


@app.command("import", add_help_option=True)
def import_cmd(
    ctx: typer.Context,
    source: Path = typer.Argument(..., help="Store file to import."),
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
    overwrite: bool = typer.Option(False, "--overwrite", help="Replace the store instead of merging."),
) -> None:
    """Merge (or overwrite with) another store file."""
    rep = _reporter(ctx, verbose=verbose)
    _execute(lambda: run_import(path, source, overwrite=overwrite, reporter=rep))


def _ask_for_url(old_url: str) -> str:
    return typer.prompt(
        f"No page found for {old_url}. Search it on {MIRROR_SEARCH_URL} and paste the new URL (empty keeps the old one)",
        default="",
        show_default=False,
    )


@app.command("fix-urls", add_help_option=True)
def fix_urls_cmd(
    ctx: typer.Context,
    path: Optional[Path] = PathOption,
    verbose: bool = VerboseOption,
    json_out: bool = typer.Option(False, "--json", help="Print summary JSON to stdout only."),
) -> None:
    """Find dead manga pages and repair their URLs."""
    rep = _reporter(ctx, json_out, verbose)
    _execute(
        lambda: run_fix_urls(path, ask=_ask_for_url, config=FetchConfig.from_env(), reporter=rep),
        json_out=json_out,
    )


if __name__ == "__main__":
    app()
