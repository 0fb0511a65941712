"""Read-only view of a rendered page: URL plus parsed DOM."""
from __future__ import annotations

import re
from functools import cached_property
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup, Tag

from jobfill.log import get_logger

log = get_logger(__name__)

_WS_RE = re.compile(r"\s+")


def element_text(el: Tag | None) -> str:
    """Whitespace-collapsed text of an element, '' for None."""
    if el is None:
        return ""
    return _WS_RE.sub(" ", el.get_text(" ", strip=True)).strip()


class PageSnapshot:
    """DOM snapshot the detectors read from.

    Queries never raise: a missing node or a selector the parser rejects both
    come back as empty results.
    """

    def __init__(self, url: str, html: str) -> None:
        self.url = url
        self.html = html or ""
        parsed = urlparse(url)
        self.hostname = (parsed.hostname or "").lower()
        self.path = parsed.path or "/"
        self.query = parse_qs(parsed.query)

    @classmethod
    async def from_playwright(cls, page) -> "PageSnapshot":
        """Capture the current DOM of a Playwright ``Page``."""
        html = await page.content()
        return cls(page.url, html)

    @cached_property
    def soup(self) -> BeautifulSoup:
        return BeautifulSoup(self.html, "html.parser")

    @property
    def document_title(self) -> str:
        return element_text(self.soup.title)

    def select(self, selector: str, root: Tag | None = None) -> list[Tag]:
        try:
            return list((root or self.soup).select(selector))
        except Exception as exc:
            log.debug("Selector %r rejected: %s", selector, exc)
            return []

    def select_one(self, selector: str, root: Tag | None = None) -> Tag | None:
        try:
            return (root or self.soup).select_one(selector)
        except Exception as exc:
            log.debug("Selector %r rejected: %s", selector, exc)
            return None

    def text(self, selector: str, root: Tag | None = None) -> str:
        return element_text(self.select_one(selector, root))

    def text_with_fallback(self, selectors: list[str], root: Tag | None = None) -> str:
        """Text of the first selector that yields a non-empty string."""
        for sel in selectors:
            value = self.text(sel, root)
            if value:
                return value
        return ""

    def attr(self, selector: str, name: str, root: Tag | None = None) -> str:
        el = self.select_one(selector, root)
        if el is None:
            return ""
        value = el.get(name)
        if isinstance(value, list):
            return " ".join(value)
        return (value or "").strip()

    def meta(self, prop: str) -> str:
        return self.attr(f'meta[property="{prop}"]', "content") or self.attr(f'meta[name="{prop}"]', "content")
