from __future__ import annotations

import asyncio
import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Coroutine, Dict, Optional, TypeVar

import aiohttp
from charset_normalizer import from_bytes

from .errors import NetworkError
from .tracker_config import (
    DEFAULT_ACCEPT_LANGUAGE,
    DEFAULT_USER_AGENT,
    ENV_CONCURRENCY,
    ENV_TIMEOUT,
    ENV_USER_AGENT,
    HDR_ACCEPT_LANGUAGE,
    HDR_USER_AGENT,
    env_float,
    env_int,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FetchConfig:
    """Configuration parameters for page fetching."""

    # 0 keeps every request of a batch in flight at once
    concurrency: int = 0
    # 0 leaves the aiohttp default timeout in place
    timeout: float = 0.0
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = DEFAULT_ACCEPT_LANGUAGE

    @classmethod
    def from_env(cls) -> "FetchConfig":
        return cls(
            concurrency=max(0, env_int(ENV_CONCURRENCY, 0)),
            timeout=max(0.0, env_float(ENV_TIMEOUT, 0.0)),
            user_agent=os.getenv(ENV_USER_AGENT) or DEFAULT_USER_AGENT,
        )

    @property
    def headers(self) -> Dict[str, str]:
        return {
            HDR_USER_AGENT: self.user_agent,
            HDR_ACCEPT_LANGUAGE: self.accept_language,
        }


def _session_kwargs(config: FetchConfig) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {
        "headers": config.headers,
        "connector": aiohttp.TCPConnector(limit=config.concurrency),
    }
    if config.timeout > 0:
        kwargs["timeout"] = aiohttp.ClientTimeout(total=config.timeout)
    return kwargs


@asynccontextmanager
async def open_session(config: Optional[FetchConfig] = None) -> AsyncIterator[aiohttp.ClientSession]:
    """Open the pooled client shared by every fetch of a batch."""
    cfg = config or FetchConfig()
    async with aiohttp.ClientSession(**_session_kwargs(cfg)) as session:
        yield session


def decode_body(body: bytes, charset: Optional[str] = None) -> str:
    """Decode a page using the declared charset, then UTF-8, then detection.

    Never raises: undecodable bytes become U+FFFD.
    """
    if charset:
        try:
            return body.decode(charset, errors="replace")
        except LookupError:
            logger.debug("unknown charset %r, falling back to detection", charset)
    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        pass
    result = from_bytes(body).best()
    if result is None:
        return body.decode("utf-8", errors="replace")
    return str(result)


class PageFetcher:
    """Single-attempt HTML downloader.

    When a session is injected its connection pool is reused for every call;
    otherwise each fetch opens and closes its own session. Status codes are not
    inspected: dead pages are recognized from their body.
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        config: Optional[FetchConfig] = None,
    ) -> None:
        self.session = session
        self.config = config or FetchConfig()

    async def fetch(self, url: str) -> str:
        try:
            if self.session is not None:
                return await self._get_text(self.session, url)
            async with aiohttp.ClientSession(**_session_kwargs(self.config)) as session:
                return await self._get_text(session, url)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            reason = str(exc) or exc.__class__.__name__
            logger.debug("fetch failed for %s: %s", url, reason)
            raise NetworkError(url, reason) from exc

    async def _get_text(self, session: aiohttp.ClientSession, url: str) -> str:
        async with session.get(url) as resp:
            raw_bytes = await resp.read()
            charset = resp.charset
            logger.debug("GET %s -> %s (%d bytes, charset=%s)", url, resp.status, len(raw_bytes), charset)
        return decode_body(raw_bytes, charset)


async def fetch_page(url: str, session: Optional[aiohttp.ClientSession] = None) -> str:
    """Fetch ``url`` once, reusing ``session`` when given."""
    return await PageFetcher(session).fetch(url)


# ---------------- Single event loop helper for sync callers ------------------
_FETCH_LOOP: Optional[asyncio.AbstractEventLoop] = None


def run_in_fetch_loop(coro: Coroutine[Any, Any, T]) -> T:
    global _FETCH_LOOP
    if _FETCH_LOOP is None or _FETCH_LOOP.is_closed():
        _FETCH_LOOP = asyncio.new_event_loop()
    return _FETCH_LOOP.run_until_complete(coro)


__all__ = ["FetchConfig", "PageFetcher", "decode_body", "fetch_page", "open_session", "run_in_fetch_loop"]
