"""Unit tests for enricher routing."""

import httpx
import pytest
import respx

from learnd.core.errors import EnrichmentError
from learnd.enrichers.base import Enricher
from learnd.enrichers.podcast import PodcastEnricher
from learnd.enrichers.registry import EnricherRegistry
from learnd.enrichers.web import WebEnricher
from learnd.enrichers.youtube import YouTubeEnricher
from learnd.services.safe_fetch import SafeFetcher


async def _public(host: str) -> list[str]:
    return ["93.184.216.34"]


def test_registry_requires_fallback() -> None:
    with pytest.raises(ValueError):
        EnricherRegistry(fallback=None)  # type: ignore[arg-type]


def test_register_orders_by_priority(stub_enricher) -> None:
    registry = EnricherRegistry(fallback=stub_enricher("fallback", 1000))
    registry.register(stub_enricher("web-ish", 100))
    registry.register(stub_enricher("first", 10))
    registry.register(stub_enricher("second", 20))
    registry.register(stub_enricher("first-too", 10))

    assert [e.name for e in registry.enrichers] == ["first", "first-too", "second", "web-ish"]


def test_resolve_picks_first_claimant(stub_enricher) -> None:
    fallback = stub_enricher("fallback")
    video = stub_enricher("video", 10, handles=lambda url: "video" in url)
    registry = EnricherRegistry(fallback=fallback)
    registry.register(video)

    assert registry.resolve("https://example.com/video/1") is video
    assert registry.resolve("https://example.com/page") is fallback


@pytest.mark.asyncio
async def test_claimant_failure_does_not_fall_through(stub_enricher) -> None:
    url = "https://example.com/video/1"
    fallback = stub_enricher("fallback")
    video = stub_enricher(
        "video",
        10,
        handles=lambda u: "video" in u,
        errors={url: EnrichmentError("video not found")},
    )
    registry = EnricherRegistry(fallback=fallback)
    registry.register(video)

    with pytest.raises(EnrichmentError, match="video not found"):
        await registry.enrich(url)

    assert fallback.calls == []


@pytest.mark.asyncio
async def test_unclaimed_url_goes_to_fallback(stub_enricher) -> None:
    fallback = stub_enricher("fallback")
    registry = EnricherRegistry(fallback=fallback)
    registry.register(stub_enricher("never", 10, handles=lambda u: False))

    result = await registry.enrich("https://example.com/a")

    assert fallback.calls == ["https://example.com/a"]
    assert result.title == "Title of https://example.com/a"


@pytest.mark.asyncio
async def test_youtube_api_error_is_not_masked_by_web_fallback() -> None:
    fetcher = SafeFetcher(resolver=_public)
    registry = EnricherRegistry(fallback=WebEnricher(fetcher))
    registry.register(YouTubeEnricher("key", fetcher, api_base_url="https://yt.example/v3"))

    async with respx.mock(assert_all_called=False) as router:
        api = router.get("https://yt.example/v3/videos").mock(return_value=httpx.Response(403))
        page = router.get("https://www.youtube.com/watch").mock(
            return_value=httpx.Response(200, text="<title>YouTube</title>")
        )

        with pytest.raises(EnrichmentError, match="YouTube API error: 403"):
            await registry.enrich("https://www.youtube.com/watch?v=dQw4w9WgXcQ")

    assert api.called
    assert not page.called


def test_strategies_satisfy_protocol() -> None:
    fetcher = SafeFetcher(resolver=_public)
    for enricher in (
        YouTubeEnricher("key", fetcher),
        PodcastEnricher(fetcher),
        WebEnricher(fetcher),
    ):
        assert isinstance(enricher, Enricher)
