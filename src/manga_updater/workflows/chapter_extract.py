"""Latest-chapter extraction for manganato-style series pages (BeautifulSoup)."""

from __future__ import annotations

import logging
from typing import Optional

from bs4 import BeautifulSoup, Tag

from .errors import ErrorKind, ExtractionError
from .models import ResolvedChapter
from .tracker_config import (
    CHAPTER_NUMBER_FALLBACK,
    CHAPTER_NUMBER_SEPARATOR,
    HTML_PARSER,
    SEL_CHAPTER_ITEM,
    SEL_CHAPTER_LINK,
    SEL_CHAPTER_LIST,
    SEL_TITLE_CONTAINER,
    SEL_TITLE_HEADING,
)

logger = logging.getLogger(__name__)


def parse_chapter_number(href: Optional[str]) -> float:
    """Read the chapter number from the last ``-`` segment of a chapter link.

    ``.../chapter-74`` gives 74.0 and ``.../chapter-74.5`` gives 74.5. Anything
    that does not parse yields 1.0.
    """
    if not href:
        return CHAPTER_NUMBER_FALLBACK
    tail = href.split(CHAPTER_NUMBER_SEPARATOR)[-1]
    if not tail or tail != tail.strip() or "_" in tail:
        return CHAPTER_NUMBER_FALLBACK
    try:
        return float(tail)
    except ValueError:
        return CHAPTER_NUMBER_FALLBACK


def _inner_html(tag: Tag) -> str:
    return tag.decode_contents()


def extract_series_title(soup: BeautifulSoup, url: str) -> str:
    container = soup.select_one(SEL_TITLE_CONTAINER)
    if container is None:
        raise ExtractionError(ErrorKind.TITLE_CONTAINER_MISSING, url)
    heading = container.select_one(SEL_TITLE_HEADING)
    if heading is None:
        raise ExtractionError(ErrorKind.TITLE_UNPARSEABLE, url)
    return _inner_html(heading)


def find_last_chapter_link(soup: BeautifulSoup, url: str) -> Tag:
    """Walk list -> first item -> first link; the site lists newest first."""
    chapter_list = soup.select_one(SEL_CHAPTER_LIST)
    if chapter_list is None:
        raise ExtractionError(ErrorKind.CHAPTER_LIST_ABSENT, url)
    item = chapter_list.select_one(SEL_CHAPTER_ITEM)
    if item is None:
        raise ExtractionError(ErrorKind.CHAPTER_LIST_EMPTY, url)
    link = item.select_one(SEL_CHAPTER_LINK)
    if link is None:
        raise ExtractionError(ErrorKind.CHAPTER_LINK_UNREACHABLE, url)
    return link


def extract_last_chapter(html: str, source_url: str) -> ResolvedChapter:
    soup = BeautifulSoup(html or "", HTML_PARSER)
    series_title = extract_series_title(soup, source_url)
    logger.debug("Processing manga %s", series_title)

    link = find_last_chapter_link(soup, source_url)
    href = link.get("href")
    if isinstance(href, list):
        href = " ".join(href)
    chapter_url = href or ""
    return ResolvedChapter(
        series_title=series_title,
        chapter_url=chapter_url,
        chapter_title=_inner_html(link),
        chapter_number=parse_chapter_number(chapter_url),
    )


__all__ = [
    "extract_last_chapter",
    "extract_series_title",
    "find_last_chapter_link",
    "parse_chapter_number",
]
