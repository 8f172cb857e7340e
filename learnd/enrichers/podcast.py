"""Apple Podcasts episode enricher (HTML meta tags + JSON-LD)."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from urllib.parse import urlsplit

import structlog
from bs4 import BeautifulSoup

from learnd.core.constants import PODCAST_HOST, EnricherPriority, SourceType
from learnd.core.errors import EnrichmentError, FetchError
from learnd.enrichers.duration import parse_jsonld_duration
from learnd.enrichers.html import meta_content, parse_html
from learnd.models.entities import EnrichmentResult
from learnd.services.safe_fetch import SafeFetcher

logger = structlog.get_logger(__name__)

_PODCAST_ID_PATTERN = re.compile(r"/id(\d+)")
_EPISODE_ID_PATTERN = re.compile(r"[?&]i=(\d+)")

_BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36",
    "Accept": "text/html,application/xhtml+xml",
    "Accept-Language": "en-US,en;q=0.9",
}


def _hostname(url: str) -> str:
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def _first_group(pattern: re.Pattern[str], value: str) -> str:
    match = pattern.search(value)
    return match.group(1) if match else ""


def _duration_from_meta(soup: BeautifulSoup) -> int:
    raw = meta_content(soup, prop="music:duration")
    match = re.match(r"\s*(\d+)", raw)
    return int(match.group(1)) if match else 0


def _duration_from_jsonld(soup: BeautifulSoup) -> int:
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        seconds = parse_jsonld_duration(script.string or script.get_text())
        if seconds > 0:
            return seconds
    return 0


def _release_date(soup: BeautifulSoup) -> datetime | None:
    raw = meta_content(soup, prop="music:release_date")
    if not raw:
        return None
    try:
        return datetime.strptime(raw[:10], "%Y-%m-%d").replace(tzinfo=UTC)
    except ValueError:
        return None


class PodcastEnricher:
    name = "podcast"
    priority = EnricherPriority.PODCAST

    def __init__(self, fetcher: SafeFetcher) -> None:
        self._fetcher = fetcher

    def can_handle(self, url: str) -> bool:
        return _hostname(url) == PODCAST_HOST

    async def enrich(self, url: str) -> EnrichmentResult:
        host = _hostname(url)
        if host != PODCAST_HOST:
            raise EnrichmentError(f"unsupported host: {host}")

        page = await self._fetcher.fetch(url, headers=_BROWSER_HEADERS)
        if page.status_code >= 400:
            raise FetchError(f"HTTP error: {page.status_code}")

        soup = parse_html(page.content)

        title = meta_content(soup, prop="og:title") or meta_content(soup, name="apple:title")
        description = meta_content(soup, prop="og:description") or meta_content(
            soup, name="apple:description"
        )

        runtime = _duration_from_meta(soup) or _duration_from_jsonld(soup)
        if runtime <= 0:
            logger.info("podcast.duration_not_found", url=url)

        return EnrichmentResult(
            canonical_url=page.url,
            domain=host,
            source_type=SourceType.PODCAST,
            title=title,
            description=description,
            published_at=_release_date(soup),
            runtime_seconds=runtime if runtime > 0 else None,
            metadata={
                "podcast_id": _first_group(_PODCAST_ID_PATTERN, url),
                "episode_id": _first_group(_EPISODE_ID_PATTERN, url),
            },
        )
