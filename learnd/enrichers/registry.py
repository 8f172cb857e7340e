"""Route URLs to the enricher that claims them."""

from __future__ import annotations

import structlog

from learnd.enrichers.base import Enricher
from learnd.models.entities import EnrichmentResult

logger = structlog.get_logger(__name__)


class EnricherRegistry:
    """Priority-ordered enrichers plus one mandatory fallback.

    The first enricher whose ``can_handle`` accepts a URL owns it: its error is
    returned as-is and no other enricher is tried. The fallback only runs when
    nothing registered claims the URL.
    """

    def __init__(self, fallback: Enricher) -> None:
        if fallback is None:
            raise ValueError("EnricherRegistry requires a fallback enricher")
        self._enrichers: list[Enricher] = []
        self._fallback = fallback

    @property
    def fallback(self) -> Enricher:
        return self._fallback

    @property
    def enrichers(self) -> tuple[Enricher, ...]:
        return tuple(self._enrichers)

    def register(self, enricher: Enricher) -> None:
        self._enrichers.append(enricher)
        # sort() is stable: equal priorities keep registration order.
        self._enrichers.sort(key=lambda e: e.priority)

    def resolve(self, url: str) -> Enricher:
        """Return the enricher that will handle ``url``."""
        for enricher in self._enrichers:
            if enricher.can_handle(url):
                return enricher
        return self._fallback

    async def enrich(self, url: str) -> EnrichmentResult:
        enricher = self.resolve(url)
        logger.debug("enricher.selected", enricher=enricher.name, url=url[:200])
        return await enricher.enrich(url)
