"""YouTube enricher backed by the YouTube Data API v3."""

from __future__ import annotations

import re
from datetime import datetime

import structlog

from learnd.core.config import settings
from learnd.core.constants import EnricherPriority, SourceType, YouTube
from learnd.core.errors import EnrichmentError
from learnd.enrichers.duration import parse_iso8601_duration
from learnd.models.entities import EnrichmentResult
from learnd.services.safe_fetch import SafeFetcher

logger = structlog.get_logger(__name__)

_VIDEO_ID_PATTERN = re.compile(
    r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/shorts/|youtube\.com/embed/)"
    r"([a-zA-Z0-9_-]{11})"
)


def extract_video_id(url: str) -> str:
    """Return the 11-character video id from watch/short/embed/youtu.be URLs, or ''."""
    match = _VIDEO_ID_PATTERN.search(str(url or ""))
    return match.group(1) if match else ""


def truncate_description(description: str) -> str:
    """Cap at 500 chars, cutting after the last sentence that ends past char 200."""
    if len(description) <= YouTube.DESCRIPTION_MAX_CHARS:
        return description
    head = description[: YouTube.DESCRIPTION_MAX_CHARS]
    cut = head.rfind(". ")
    if cut > YouTube.DESCRIPTION_MIN_SENTENCE_CUT:
        return head[: cut + 1]
    return head + "..."


def _parse_published_at(value: str) -> datetime | None:
    try:
        return datetime.fromisoformat(str(value or "").replace("Z", "+00:00"))
    except ValueError:
        return None


class YouTubeEnricher:
    name = "youtube"
    priority = EnricherPriority.YOUTUBE

    def __init__(
        self,
        api_key: str,
        fetcher: SafeFetcher,
        *,
        api_base_url: str | None = None,
    ) -> None:
        self._api_key = api_key
        self._fetcher = fetcher
        self._api_base_url = (api_base_url or settings.YOUTUBE_API_BASE_URL).rstrip("/")

    def can_handle(self, url: str) -> bool:
        return extract_video_id(url) != ""

    async def enrich(self, url: str) -> EnrichmentResult:
        video_id = extract_video_id(url)
        if not video_id:
            raise EnrichmentError("could not extract video ID from URL")

        page = await self._fetcher.fetch(
            f"{self._api_base_url}/videos",
            params={"id": video_id, "part": "snippet,contentDetails", "key": self._api_key},
            headers={"Accept": "application/json"},
        )
        if page.status_code != 200:
            raise EnrichmentError(f"YouTube API error: {page.status_code}")

        try:
            payload = page.json()
        except ValueError as exc:
            raise EnrichmentError(f"failed to decode YouTube response: {exc}") from exc

        items = payload.get("items") if isinstance(payload, dict) else None
        if not items:
            raise EnrichmentError("video not found")

        item = items[0] or {}
        snippet = item.get("snippet") or {}
        content_details = item.get("contentDetails") or {}

        runtime = parse_iso8601_duration(str(content_details.get("duration") or ""))

        return EnrichmentResult(
            canonical_url=f"https://www.youtube.com/watch?v={video_id}",
            domain="youtube.com",
            source_type=SourceType.YOUTUBE,
            title=str(snippet.get("title") or ""),
            description=truncate_description(str(snippet.get("description") or "")),
            published_at=_parse_published_at(snippet.get("publishedAt") or ""),
            runtime_seconds=runtime if runtime > 0 else None,
            metadata={
                "channel_title": str(snippet.get("channelTitle") or ""),
                "channel_id": str(snippet.get("channelId") or ""),
                "video_id": video_id,
            },
        )
