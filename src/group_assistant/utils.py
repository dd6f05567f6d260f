"""Miscellaneous helpers."""

from __future__ import annotations

import html
import re

_LEADING_INT = re.compile(r"^\s*([+-]?[0-9]+)")
_LINK_PATTERN = re.compile(r"https?://[^\s<>\"']+", re.IGNORECASE)
_SCRIPT_BLOCKS = re.compile(r"<(script|style|noscript)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAGS = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")


def normalize_username(username: str | None) -> str | None:
    """Return a lowercase username without @ prefix."""

    if username is None:
        return None
    normalized = username.strip()
    if normalized.startswith("@"):
        normalized = normalized[1:]
    normalized = normalized.strip().lower()
    return normalized or None


def parse_leading_int(value: str) -> int | None:
    """Parse the leading ASCII integer of ``value`` (``"12abc"`` -> 12).

    Returns ``None`` when the text does not start with digits.
    """

    match = _LEADING_INT.match(value)
    if match is None:
        return None
    return int(match.group(1))


def extract_links(text: str) -> list[str]:
    return _LINK_PATTERN.findall(text or "")


def html_to_text(markup: str, limit: int | None = None) -> str:
    text = _SCRIPT_BLOCKS.sub(" ", markup)
    text = _TAGS.sub(" ", text)
    text = html.unescape(text)
    text = _WHITESPACE.sub(" ", text).strip()
    if limit is not None and len(text) > limit:
        return text[:limit]
    return text
