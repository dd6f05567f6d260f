from __future__ import annotations

import asyncio
from typing import Protocol

import aiohttp

from .errors import TransportError
from .utils import html_to_text

_MAX_PAGE_CHARS = 8000
_USER_AGENT = "Mozilla/5.0 (compatible; GroupAssistant/1.0)"


class PageFetcher(Protocol):
    async def fetch_text(self, url: str) -> str: ...


class HttpPageFetcher:
    """Download a page and reduce it to plain text."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        *,
        timeout: float = 15.0,
        max_chars: int = _MAX_PAGE_CHARS,
    ) -> None:
        self._session = session
        self._timeout = timeout
        self._max_chars = max_chars

    async def fetch_text(self, url: str) -> str:
        try:
            timeout_cfg = aiohttp.ClientTimeout(total=self._timeout)
            async with self._session.get(
                url,
                timeout=timeout_cfg,
                headers={"User-Agent": _USER_AGENT},
            ) as resp:
                if resp.status != 200:
                    raise TransportError(
                        f"Page {url} returned status {resp.status}", status=resp.status
                    )
                markup = await resp.text(errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise TransportError(f"Failed to fetch {url}: {exc}") from exc
        text = html_to_text(markup, self._max_chars)
        if not text:
            raise TransportError(f"Page {url} has no readable content")
        return text
