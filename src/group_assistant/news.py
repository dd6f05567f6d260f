"""Headline source backed by an RSS feed."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

import aiohttp
import feedparser

from .errors import TransportError

logger = logging.getLogger(__name__)


class NewsSource(Protocol):
    async def headlines(self, query: str | None = None) -> list[str]: ...


class RssNewsSource:
    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        feed_url: str,
        search_url: str,
        limit: int = 5,
        timeout: float = 15.0,
    ) -> None:
        self._session = session
        self._feed_url = feed_url
        self._search_url = search_url
        self._limit = limit
        self._timeout = timeout

    async def headlines(self, query: str | None = None) -> list[str]:
        if query:
            url, params = self._search_url, {"q": query}
        else:
            url, params = self._feed_url, None
        try:
            timeout_cfg = aiohttp.ClientTimeout(total=self._timeout)
            async with self._session.get(url, params=params, timeout=timeout_cfg) as resp:
                if resp.status != 200:
                    raise TransportError(
                        f"News feed returned status {resp.status}", status=resp.status
                    )
                body = await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"News feed request failed: {exc}") from exc
        return parse_rss_titles(body, self._limit)


def parse_rss_titles(document: str, limit: int) -> list[str]:
    parsed = feedparser.parse(document)
    if parsed.bozo and not parsed.entries:
        logger.warning("Failed to parse news feed: %s", parsed.get("bozo_exception"))
        return []
    titles: list[str] = []
    for entry in parsed.entries:
        title = (entry.get("title") or "").strip()
        if title:
            titles.append(title)
        if len(titles) >= limit:
            break
    return titles
