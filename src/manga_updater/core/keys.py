"""Shared schema keys to avoid magic strings across manga-updater modules."""

from __future__ import annotations

# Store (CSV) header, in column order
K_COL_URL = "URL"
K_COL_LAST_CHAPTER = "Last chapter"
K_COL_TITLE = "Title"
STORE_HEADER = (K_COL_URL, K_COL_LAST_CHAPTER, K_COL_TITLE)

# Summary / JSON payload keys
K_URL = "url"
K_POSITION = "position"
K_TITLE = "title"
K_LAST_CHAPTER = "last_chapter"
K_LATEST_CHAPTER = "latest_chapter"
K_CHAPTER_TITLE = "chapter_title"
K_CHAPTER_URL = "chapter_url"
K_HAS_UPDATE = "has_update"
K_ERROR = "error"
K_ERROR_KIND = "error_kind"
K_STAGE = "stage"
