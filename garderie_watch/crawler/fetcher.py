# garderie_watch/crawler/fetcher.py
"""
Fetcher module: downloads magarderie.com index and details pages.

The fetcher performs no retries; any network error, timeout or non-2xx
status is reported as :class:`~garderie_watch.errors.FetchError` and the
caller decides whether it is fatal.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Mapping, Optional, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from garderie_watch.config import AppConfig, UrlConfig
from garderie_watch.crawler.query import QueryParam, index_query
from garderie_watch.errors import FetchError
from garderie_watch.logger import get_logger

__all__ = ["PageFetcher", "open_session"]


class PageFetcher:
    """Fetches raw index and details pages through a shared aiohttp session."""

    def __init__(
        self,
        session: ClientSession,
        urls: UrlConfig,
        query_params: Sequence[QueryParam],
    ) -> None:
        self.session = session
        self.urls = urls
        self.query_params = tuple(query_params)
        self.logger = get_logger("fetcher")

    async def fetch_index_page(self, page_num: int) -> str:
        """Fetch search results page ``page_num`` with the fixed query parameters."""
        params = index_query(self.query_params, page_num)
        self.logger.debug("Fetching index page %d", page_num)
        return await self._get(self.urls.index, params)

    async def fetch_detail_page(self, href: str) -> str:
        """Fetch the details page behind a relative link found on an index page."""
        if not href.startswith("/"):
            href = "/" + href
        return await self._get(self.urls.base + href)

    async def _get(self, url: str, params: Optional[Mapping[str, str]] = None) -> str:
        try:
            async with self.session.get(url, params=params, raise_for_status=False) as resp:
                if not 200 <= resp.status < 300:
                    raise FetchError(str(resp.url), resp.reason or "unexpected status", resp.status)
                return await resp.text()
        except asyncio.TimeoutError as exc:
            raise FetchError(url, "timed out") from exc
        except ClientError as exc:
            raise FetchError(url, str(exc) or type(exc).__name__) from exc


@asynccontextmanager
async def open_session(config: AppConfig) -> AsyncIterator[ClientSession]:
    """Open an aiohttp session configured with the crawl timeout and User-Agent."""
    timeout = ClientTimeout(total=config.http.timeout)
    session = ClientSession(
        timeout=timeout,
        headers={"User-Agent": config.http.user_agent},
        raise_for_status=False,
    )
    try:
        yield session
    finally:
        if not session.closed:
            await session.close()
