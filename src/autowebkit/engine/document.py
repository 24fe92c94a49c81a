"""A small parsed-HTML wrapper for reading values out of fetched pages."""

from __future__ import annotations

import logging

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

logger = logging.getLogger("autowebkit.engine.document")


class HTMLDocument:
    """A parsed web document, queried with CSS selectors."""

    def __init__(self, html: str) -> None:
        self._soup = BeautifulSoup(html, "html.parser")

    def _first(self, selector: str) -> Tag | None:
        try:
            return self._soup.select_one(selector)
        except SelectorSyntaxError as exc:
            logger.warning("Invalid selector %r: %s", selector, exc)
            return None

    def value_for_element(self, selector: str) -> str | None:
        """Return the ``value`` attribute of the first match, or None."""
        element = self._first(selector)
        if element is None:
            return None
        value = element.get("value")
        if isinstance(value, list):  # multi-valued attributes come back as lists
            return " ".join(value)
        return value

    def text_for_element(self, selector: str) -> str | None:
        element = self._first(selector)
        if element is None:
            return None
        return element.get_text(strip=True)
