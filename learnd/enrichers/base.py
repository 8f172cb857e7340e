"""Capability interface shared by every metadata enricher."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from learnd.models.entities import EnrichmentResult


@runtime_checkable
class Enricher(Protocol):
    name: str
    priority: int

    def can_handle(self, url: str) -> bool:
        """Cheap synchronous check; no network access."""
        ...

    async def enrich(self, url: str) -> EnrichmentResult:
        """Extract metadata for ``url``. Raises on any failure."""
        ...
