"""Tracker defaults (selectors, markers, headers, paths, env knobs).

Centralizes static defaults so the scraper and store modules carry no embedded
magic strings. Runtime values are read from the environment (a ``.env`` file
is honored) when a FetchConfig is built.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=False)

# Page layout (manganato family)
SEL_TITLE_CONTAINER = "div.story-info-right"
SEL_TITLE_HEADING = "h1"
SEL_CHAPTER_LIST = "ul.row-content-chapter"
SEL_CHAPTER_ITEM = "li"
SEL_CHAPTER_LINK = "a"
CHAPTER_NUMBER_SEPARATOR = "-"
CHAPTER_NUMBER_FALLBACK = 1.0
HTML_PARSER = "lxml"

# Dead-page detection and mirror rewrite
NOT_FOUND_MARKER = "404 - PAGE NOT FOUND"
MIRROR_TOKEN = "manganato"
MIRROR_READ_TOKEN = "readmanganato"
MIRROR_LEGACY_TOKEN = "manganelo"
MIRROR_READ_PREFIX = "https://read"
MIRROR_READ_INFIX = "read"
MIRROR_SEARCH_URL = "https://manganato.com"

# Headers
HDR_USER_AGENT = "User-Agent"
HDR_ACCEPT_LANGUAGE = "Accept-Language"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)
DEFAULT_ACCEPT_LANGUAGE = "en-US,en;q=0.9"

# Store paths
STORE_FILENAME = "mangas.csv"
BACKUP_SUFFIX = ".bak"
DEFAULT_STORE_DIR = Path.home() / ".manga-updater"

# Environment variable names
ENV_STORE_PATH = "MANGA_UPDATER_STORE_PATH"
ENV_CONCURRENCY = "MANGA_UPDATER_CONCURRENCY"
ENV_TIMEOUT = "MANGA_UPDATER_TIMEOUT"
ENV_USER_AGENT = "MANGA_UPDATER_USER_AGENT"
ENV_VERBOSE = "MANGA_UPDATER_VERBOSE"


def env_int(name: str, default: int = 0) -> int:
    try:
        raw = os.getenv(name, "")
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def env_float(name: str, default: float = 0.0) -> float:
    try:
        raw = os.getenv(name, "")
        return float(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def env_bool(name: str, default: str = "0") -> bool:
    raw = os.getenv(name, default)
    return str(raw).strip().lower() not in {"0", "false", "no", "off", ""}


def default_store_path() -> Path:
    env_path = os.getenv(ENV_STORE_PATH)
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_STORE_DIR / STORE_FILENAME


__all__ = [name for name in globals() if name.isupper()] + [
    "env_int",
    "env_float",
    "env_bool",
    "default_store_path",
]
