"""BeautifulSoup helpers shared by the HTML-scraping enrichers."""

from __future__ import annotations

import math

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PreformattedString

from learnd.core.constants import Reading

# Never visible content: skipped outright wherever they appear.
_NON_CONTENT_TAGS = frozenset({"script", "style", "noscript", "svg", "canvas", "head"})
# Page chrome: the whole subtree is excluded from the word count.
_BOILERPLATE_TAGS = frozenset({"nav", "footer", "aside"})


def parse_html(content: bytes | str) -> BeautifulSoup:
    return BeautifulSoup(content, "html.parser")


def meta_content(soup: BeautifulSoup, *, prop: str | None = None, name: str | None = None) -> str:
    """Return the first non-empty ``content`` of a matching <meta> tag, or ''."""
    attrs = {"property": prop} if prop else {"name": name}
    for tag in soup.find_all("meta", attrs=attrs):
        content = str(tag.get("content") or "").strip()
        if content:
            return content
    return ""


def find_primary_content(soup: BeautifulSoup) -> Tag:
    """Most specific content container: <article>, then <main>, then <body>, then the document."""
    for tag_name in ("article", "main", "body"):
        node = soup.find(tag_name)
        if isinstance(node, Tag):
            return node
    return soup


def count_words(node: Tag) -> int:
    total = 0
    for child in node.children:
        if isinstance(child, Tag):
            if child.name in _NON_CONTENT_TAGS or child.name in _BOILERPLATE_TAGS:
                continue
            total += count_words(child)
        elif isinstance(child, NavigableString) and not isinstance(child, PreformattedString):
            # PreformattedString covers comments, doctypes and CDATA.
            total += len(child.split())
    return total


def estimate_reading_time(soup: BeautifulSoup) -> tuple[int, int]:
    """Return ``(seconds, words)`` at 200 words/minute, rounding minutes up."""
    words = count_words(find_primary_content(soup))
    if words == 0:
        return 0, 0
    minutes = math.ceil(words / Reading.WORDS_PER_MINUTE)
    return minutes * 60, words
