"""Generic web page enricher: the registry's catch-all fallback."""

from __future__ import annotations

from urllib.parse import urljoin, urlsplit

import structlog
from bs4 import BeautifulSoup

from learnd.core.constants import EnricherPriority, SourceType
from learnd.core.errors import FetchError
from learnd.enrichers.html import estimate_reading_time, meta_content, parse_html
from learnd.models.entities import EnrichmentResult
from learnd.services.safe_fetch import SafeFetcher

logger = structlog.get_logger(__name__)

# Source types where a words-per-minute estimate is a meaningful runtime.
_READ_TIME_TYPES = frozenset({SourceType.ARTICLE, SourceType.DOC, SourceType.OTHER})

_ARTICLE_HINTS = ("medium.com", "dev.to", "blog", "substack.com")
_DOC_HINTS = ("docs.", "documentation", "pkg.go.dev", "developer.")


def classify_source_type(domain: str, og_type: str = "") -> SourceType:
    """Classify by domain keywords first, then by the page's og:type."""
    domain = domain.lower()
    if "youtube.com" in domain or "youtu.be" in domain:
        return SourceType.YOUTUBE
    if "podcasts.apple.com" in domain or "spotify.com" in domain:
        return SourceType.PODCAST
    if any(hint in domain for hint in _ARTICLE_HINTS):
        return SourceType.ARTICLE
    if any(hint in domain for hint in _DOC_HINTS):
        return SourceType.DOC

    og_type = og_type.strip().lower()
    if og_type == "article":
        return SourceType.ARTICLE
    if og_type in ("video", "video.other") or og_type.startswith("video."):
        return SourceType.YOUTUBE
    return SourceType.OTHER


def _title(soup: BeautifulSoup) -> str:
    og_title = meta_content(soup, prop="og:title")
    if og_title:
        return og_title
    if soup.title is not None:
        return soup.title.get_text().strip()
    return ""


def _canonical(soup: BeautifulSoup, final_url: str) -> str:
    link = soup.find("link", rel="canonical")
    href = str(link.get("href") or "").strip() if link is not None else ""
    return urljoin(final_url, href) if href else final_url


class WebEnricher:
    name = "web"
    priority = EnricherPriority.WEB

    def __init__(self, fetcher: SafeFetcher) -> None:
        self._fetcher = fetcher

    def can_handle(self, url: str) -> bool:
        return True

    async def enrich(self, url: str) -> EnrichmentResult:
        page = await self._fetcher.fetch(url)
        if page.status_code >= 400:
            raise FetchError(f"HTTP error: {page.status_code}")

        soup = parse_html(page.content)
        domain = (urlsplit(url).hostname or "").lower()
        og_type = meta_content(soup, prop="og:type")

        metadata: dict = {}
        if og_type:
            metadata["og_type"] = og_type

        result = EnrichmentResult(
            canonical_url=_canonical(soup, page.url),
            domain=domain,
            source_type=classify_source_type(domain, og_type),
            title=_title(soup),
            description=meta_content(soup, prop="og:description")
            or meta_content(soup, name="description"),
            metadata=metadata,
        )

        if result.runtime_seconds is None and result.source_type in _READ_TIME_TYPES:
            seconds, words = estimate_reading_time(soup)
            if seconds > 0:
                result.runtime_seconds = seconds
                result.metadata["read_time_seconds"] = seconds
                result.metadata["word_count"] = words

        logger.debug(
            "web.enriched",
            url=url[:200],
            source_type=result.source_type.value,
            truncated=page.truncated,
        )
        return result
